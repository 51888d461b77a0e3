"""
Atomic writes for run provenance and report tables.

Every output goes to a temporary file in the destination directory first and
is moved into place with ``os.replace()``, so an interrupted multi-hour run
never leaves a half-written report behind under the final name.
"""

from __future__ import annotations

import json
import os
import tempfile
from typing import Any, Callable, TextIO

import pandas as pd

__all__ = ['atomic_write', 'atomic_write_json', 'atomic_write_text', 'atomic_write_frame']


def atomic_write(path: str | os.PathLike, write: Callable[[TextIO], None]) -> None:
    """Call *write* on a temporary text file, then rename it to *path*.

    Parameters
    ----------
    path:
        Destination file path. Its directory must exist.
    write:
        Callback that receives the open temporary file.
    """
    path = os.fspath(path)
    dir_path = os.path.dirname(path) or "."
    tmp_path: str | None = None
    try:
        with tempfile.NamedTemporaryFile(
            mode="w", dir=dir_path, suffix=".tmp", delete=False, newline=""
        ) as tmp:
            tmp_path = tmp.name
            write(tmp)
        os.replace(tmp_path, path)
    except BaseException:
        if tmp_path is not None and os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise


def atomic_write_json(path: str | os.PathLike, data: Any, *, indent: int = 2) -> None:
    """Write *data* as JSON. Values JSON cannot encode (paths, enums) are written via str()."""
    atomic_write(path, lambda fh: json.dump(data, fh, indent=indent, default=str))


def atomic_write_text(path: str | os.PathLike, content: str) -> None:
    atomic_write(path, lambda fh: fh.write(content))


def atomic_write_frame(path: str | os.PathLike, frame: pd.DataFrame, **to_csv_kwargs: Any) -> None:
    """Write a DataFrame as tab-delimited text; extra keywords go to ``DataFrame.to_csv``."""
    to_csv_kwargs.setdefault('sep', '\t')
    atomic_write(path, lambda fh: frame.to_csv(fh, **to_csv_kwargs))
