# sinks.py
# SPDX-License-Identifier: MIT
"""Sinks receiving pipeline output."""
from __future__ import annotations

import base64
import json
import os
import sys
from collections.abc import Mapping
from datetime import date, datetime
from pathlib import Path
from typing import Any, Self, TextIO

__all__ = ["JSONLSink", "ListSink"]


def _json_default(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return base64.b64encode(bytes(value)).decode("ascii")
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (set, frozenset, tuple)):
        return list(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


class JSONLSink:
    """Write each output record as one compact JSON line.

    With a path, lines go to ``<path>.tmp`` which replaces ``path`` on
    :meth:`close`, so readers never observe a half-written file. Without a
    path, lines go to stdout, which is left open.
    """

    def __init__(self, out_path: str | os.PathLike[str] | None = None) -> None:
        self._path = Path(out_path) if out_path is not None else None
        self._tmp_path: Path | None = None
        self._fp: TextIO | None = None

    def open(self) -> None:
        if self._path is None:
            self._fp = sys.stdout
            return
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._tmp_path = self._path.with_name(f"{self._path.name}.tmp")
        self._fp = self._tmp_path.open("w", encoding="utf-8")

    def write(self, record: Mapping[str, Any]) -> None:
        if self._fp is None:
            raise RuntimeError("JSONLSink.write() called before open()")
        self._fp.write(
            json.dumps(record, ensure_ascii=False, separators=(",", ":"), default=_json_default) + "\n"
        )

    def close(self) -> None:
        """Flush output and move the temp file into place."""
        fp, self._fp = self._fp, None
        if fp is None:
            return
        if self._path is None:
            fp.flush()
            return
        fp.close()
        if self._tmp_path is not None:
            os.replace(self._tmp_path, self._path)
            self._tmp_path = None

    def __enter__(self) -> Self:
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class ListSink:
    """In-memory sink, handy for embedding and tests."""

    def __init__(self) -> None:
        self.records: list[dict[str, Any]] = []
        self.closed = False

    def open(self) -> None:
        self.closed = False

    def write(self, record: Mapping[str, Any]) -> None:
        self.records.append(dict(record))

    def close(self) -> None:
        self.closed = True
