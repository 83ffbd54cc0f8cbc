"""
Atomic file-write helpers for pipeline outputs.

Every output file is written to a temporary file in the destination
directory and moved into place with ``os.replace()``, so an interrupted run
never leaves a truncated clique table or gene list behind.
"""

from __future__ import annotations

import json
import os
import tempfile
from contextlib import contextmanager
from typing import Any, Iterable, Iterator, TextIO

import pandas as pd

__all__ = [
    'atomic_open',
    'atomic_write_json',
    'atomic_write_text',
    'atomic_write_lines',
    'atomic_write_table',
]


@contextmanager
def atomic_open(path: str | os.PathLike) -> Iterator[TextIO]:
    """Open a temp file next to *path*; rename it over *path* on success.

    On any exception the temp file is removed and the exception re-raised.
    """
    path = os.fspath(path)
    dir_path = os.path.dirname(path) or "."
    os.makedirs(dir_path, exist_ok=True)
    tmp_path: str | None = None
    try:
        with tempfile.NamedTemporaryFile(
            mode="w", dir=dir_path, suffix=".tmp", delete=False, newline=""
        ) as tmp:
            tmp_path = tmp.name
            yield tmp
        os.replace(tmp_path, path)
    except BaseException:
        if tmp_path is not None and os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise


def atomic_write_json(path: str | os.PathLike, data: Any, *, indent: int = 2) -> None:
    """Write *data* as JSON atomically."""
    with atomic_open(path) as fh:
        json.dump(data, fh, indent=indent, default=str)


def atomic_write_text(path: str | os.PathLike, content: str) -> None:
    with atomic_open(path) as fh:
        fh.write(content)


def atomic_write_lines(path: str | os.PathLike, lines: Iterable[str]) -> None:
    """Write one item per line (trailing newline included when non-empty)."""
    with atomic_open(path) as fh:
        for line in lines:
            fh.write(f"{line}\n")


def atomic_write_table(path: str | os.PathLike, frame: pd.DataFrame, *, sep: str = "\t") -> None:
    """Write a DataFrame as a delimited table without the index."""
    with atomic_open(path) as fh:
        frame.to_csv(fh, sep=sep, index=False)
