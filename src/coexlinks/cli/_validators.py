"""Shared argparse type validators for CLI parameter bounds checking.

These validators produce clear error messages when users pass invalid
values (e.g., ``--iterations -5``, ``--min-present-fraction 1.5``). They
are intended to be used as the ``type=`` argument in ``add_argument()``.
"""

from __future__ import annotations

import argparse


def _positive_int(value: str) -> int:
    """argparse type for positive integers (> 0)."""
    ivalue = int(value)
    if ivalue <= 0:
        raise argparse.ArgumentTypeError(f"{value} is not a positive integer")
    return ivalue


def _non_negative_int(value: str) -> int:
    """argparse type for integers >= 0 (iteration counts, k-max)."""
    ivalue = int(value)
    if ivalue < 0:
        raise argparse.ArgumentTypeError(f"{value} is not a non-negative integer")
    return ivalue


def _fraction(value: str) -> float:
    """argparse type for values in the half-open interval [0, 1)."""
    fvalue = float(value)
    if not (0 <= fvalue < 1):
        raise argparse.ArgumentTypeError(
            f"{value} is not a valid fraction (must be in [0, 1))"
        )
    return fvalue


def _non_negative_float(value: str) -> float:
    """argparse type for floats >= 0 (timeouts)."""
    fvalue = float(value)
    if fvalue < 0:
        raise argparse.ArgumentTypeError(f"{value} is not a non-negative number")
    return fvalue
