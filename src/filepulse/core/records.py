# records.py
# SPDX-License-Identifier: MIT
"""Output records and the offsets that locate them inside a source object."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any

__all__ = [
    "FileRecordOffset",
    "BytesRecordOffset",
    "LineRecordOffset",
    "EMPTY_OFFSET",
    "FileRecord",
    "DEFAULT_MESSAGE_FIELD",
    "timestamp_millis",
]

# Field used by the built-in readers for the raw payload of a record.
DEFAULT_MESSAGE_FIELD = "message"


@dataclass(frozen=True, slots=True)
class FileRecordOffset:
    """Position of a record within its source object.

    The base class is the empty offset, used for records that do not map to a
    byte range (e.g. a record describing the file itself).
    """

    def to_source_offset(self) -> dict[str, Any]:
        """Return a JSON-friendly mapping suitable for durable offset storage."""
        return {}


@dataclass(frozen=True, slots=True)
class BytesRecordOffset(FileRecordOffset):
    """Half-open byte range ``[start, end)`` covered by a record."""

    start: int = 0
    end: int = 0

    def to_source_offset(self) -> dict[str, Any]:
        return {"startPosition": self.start, "endPosition": self.end}


@dataclass(frozen=True, slots=True)
class LineRecordOffset(FileRecordOffset):
    """Byte range of a line-oriented record plus its 1-based row number."""

    start_position: int = 0
    end_position: int = 0
    rows: int = 0

    def to_source_offset(self) -> dict[str, Any]:
        return {
            "startPosition": self.start_position,
            "endPosition": self.end_position,
            "rows": self.rows,
        }


EMPTY_OFFSET = FileRecordOffset()


# Convention: records are created on the hot path, keep them slotted.
@dataclass(slots=True)
class FileRecord:
    """A structured value extracted from a source object.

    Attributes:
        value (dict[str, Any]): Nested key/value payload.
        offset (FileRecordOffset): Where the record came from.
        topic (str | None): Destination topic hint.
        partition (int | None): Destination partition hint.
        timestamp (int | None): Record timestamp in epoch milliseconds.
        headers (dict[str, Any]): Headers to attach on output.
        key (str | None): Record key.
    """

    value: dict[str, Any]
    offset: FileRecordOffset = EMPTY_OFFSET
    topic: str | None = None
    partition: int | None = None
    timestamp: int | None = None
    headers: dict[str, Any] = field(default_factory=dict)
    key: str | None = None

    def with_topic(self, topic: str | None) -> FileRecord:
        return replace(self, topic=topic)

    def with_partition(self, partition: int | None) -> FileRecord:
        return replace(self, partition=partition)

    def with_timestamp(self, timestamp: int | None) -> FileRecord:
        return replace(self, timestamp=timestamp)

    def with_headers(self, headers: Mapping[str, Any] | None) -> FileRecord:
        return replace(self, headers=dict(headers or {}))

    def with_key(self, key: str | None) -> FileRecord:
        return replace(self, key=key)

    def to_dict(self) -> dict[str, Any]:
        """Return the record as a plain mapping, omitting unset hints."""
        data: dict[str, Any] = {"value": self.value, "offset": self.offset.to_source_offset()}
        if self.topic is not None:
            data["topic"] = self.topic
        if self.partition is not None:
            data["partition"] = self.partition
        if self.timestamp is not None:
            data["timestamp"] = self.timestamp
        if self.headers:
            data["headers"] = dict(self.headers)
        if self.key is not None:
            data["key"] = self.key
        return data


def timestamp_millis(moment: datetime | float | int | None) -> int | None:
    """Normalize a datetime or epoch-seconds value to epoch milliseconds."""
    if moment is None:
        return None
    if isinstance(moment, datetime):
        return int(moment.timestamp() * 1000)
    return int(float(moment) * 1000)
