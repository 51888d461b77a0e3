"""Utility modules: atomic file writes and bounded readiness waits."""

from coexlinks.utils.fileio import (
    atomic_write,
    atomic_write_frame,
    atomic_write_json,
    atomic_write_text,
)
from coexlinks.utils.readiness import wait_until_ready

__all__ = [
    'atomic_write',
    'atomic_write_frame',
    'atomic_write_json',
    'atomic_write_text',
    'wait_until_ready',
]
