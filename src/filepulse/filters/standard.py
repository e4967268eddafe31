# standard.py
# SPDX-License-Identifier: MIT
"""Reference filters registered under the default filter kinds."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from ..core.context import FilterContext
from ..core.filters import AbstractRecordFilter, FilterException
from ..core.records import EMPTY_OFFSET, FileRecord, FileRecordOffset

__all__ = ["DropFilter", "FailFilter", "ExcludeFilter", "GroupRowFilter"]


class DropFilter(AbstractRecordFilter):
    """Drop every accepted record."""

    def apply(self, context: FilterContext, record: Mapping[str, Any], has_next: bool) -> Iterable[dict[str, Any]]:
        return []


class FailFilter(AbstractRecordFilter):
    """Fail every accepted record.

    Inside an error pipeline, the default message repeats the error that
    routed the record there so the failure surfaces with its original cause.
    """

    def __init__(self, *, message: str | None = None, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._message = message

    def apply(self, context: FilterContext, record: Mapping[str, Any], has_next: bool) -> Iterable[dict[str, Any]]:
        if self._message:
            raise FilterException(self._message)
        if context.error is not None:
            raise FilterException(f"{context.error.filter}: {context.error.message}")
        raise FilterException(f"Record rejected by filter '{self.label()}'")


class ExcludeFilter(AbstractRecordFilter):
    """Remove top-level fields from each record."""

    def __init__(self, *, fields: Sequence[str], **kwargs: Any) -> None:
        super().__init__(**kwargs)
        if not fields:
            raise ValueError("ExcludeFilter requires at least one field")
        self._fields = frozenset(fields)

    def apply(self, context: FilterContext, record: Mapping[str, Any], has_next: bool) -> Iterable[dict[str, Any]]:
        return [{k: v for k, v in record.items() if k not in self._fields}]


class GroupRowFilter(AbstractRecordFilter):
    """Group consecutive records sharing the same values for ``fields``.

    A group is emitted when a record with a different key arrives, when
    ``max_buffered_records`` is reached, or when no more input follows. The
    emitted record holds the key fields plus the grouped records under
    ``target``.

    Raises:
        FilterException: From :meth:`apply` when a record lacks a key field.
    """

    def __init__(
        self,
        *,
        fields: Sequence[str],
        max_buffered_records: int = -1,
        target: str = "records",
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        if not fields:
            raise ValueError("GroupRowFilter requires at least one field")
        self._fields = tuple(fields)
        self._max = int(max_buffered_records)
        self._target = target
        self._buffer: list[dict[str, Any]] = []
        self._key: tuple[Any, ...] | None = None
        self._first_offset: FileRecordOffset = EMPTY_OFFSET

    def apply(self, context: FilterContext, record: Mapping[str, Any], has_next: bool) -> Iterable[dict[str, Any]]:
        missing = [f for f in self._fields if f not in record]
        if missing:
            raise FilterException(f"Cannot group record, missing field(s): {', '.join(missing)}")
        key = tuple(record[f] for f in self._fields)

        out: list[dict[str, Any]] = []
        if self._buffer and key != self._key:
            out.append(self._drain())
        if not self._buffer:
            self._key = key
            self._first_offset = context.offset
        self._buffer.append(dict(record))
        if not has_next or (self._max > 0 and len(self._buffer) >= self._max):
            out.append(self._drain())
        return out

    def flush(self) -> Iterable[FileRecord]:
        if not self._buffer:
            return []
        offset = self._first_offset
        return [FileRecord(value=self._drain(), offset=offset)]

    def clear(self) -> None:
        self._buffer = []
        self._key = None
        self._first_offset = EMPTY_OFFSET

    def _drain(self) -> dict[str, Any]:
        grouped: dict[str, Any] = dict(zip(self._fields, self._key or ()))
        grouped[self._target] = self._buffer
        self.clear()
        return grouped
