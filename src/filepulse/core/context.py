# context.py
# SPDX-License-Identifier: MIT
"""Per-record filter contexts and the builder that derives them."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from .records import EMPTY_OFFSET, FileRecordOffset

__all__ = ["FilterError", "FilterContext", "FilterContextBuilder"]


@dataclass(frozen=True, slots=True)
class FilterError:
    """Describes why a record was routed into an error pipeline.

    Attributes:
        message (str): Failure message raised by the filter.
        filter (str): Label of the filter that failed.
    """

    message: str
    filter: str


@dataclass(slots=True)
class FilterContext:
    """Metadata travelling with one record through one pipeline node.

    ``metadata``, ``offset`` and ``error`` describe where the record comes
    from and are not meant to change. The destination hints (``topic``,
    ``partition``, ``timestamp``, ``headers``, ``key``) may be set by the
    filter currently holding the context; they are copied onto every record
    the filter produces and inherited by the contexts of downstream nodes.
    """

    metadata: Any = None
    offset: FileRecordOffset = EMPTY_OFFSET
    topic: str | None = None
    partition: int | None = None
    timestamp: int | None = None
    headers: dict[str, Any] = field(default_factory=dict)
    key: str | None = None
    error: FilterError | None = None


class FilterContextBuilder:
    """Fluent builder for :class:`FilterContext`.

    A builder created from a parent copies its metadata, offset, destination
    hints and error; ``build`` always returns a new object, so deriving never
    mutates the parent.

    Example:
        >>> ctx = FilterContextBuilder.new_builder().with_offset(offset).build()
        >>> err_ctx = (
        ...     FilterContextBuilder.new_builder(ctx)
        ...     .with_error(FilterError("boom", "parse"))
        ...     .build()
        ... )
    """

    __slots__ = ("_metadata", "_offset", "_topic", "_partition", "_timestamp", "_headers", "_key", "_error")

    def __init__(self, parent: FilterContext | None = None) -> None:
        if parent is None:
            self._metadata: Any = None
            self._offset: FileRecordOffset = EMPTY_OFFSET
            self._topic: str | None = None
            self._partition: int | None = None
            self._timestamp: int | None = None
            self._headers: dict[str, Any] = {}
            self._key: str | None = None
            self._error: FilterError | None = None
        else:
            self._metadata = parent.metadata
            self._offset = parent.offset
            self._topic = parent.topic
            self._partition = parent.partition
            self._timestamp = parent.timestamp
            self._headers = dict(parent.headers)
            self._key = parent.key
            self._error = parent.error

    @classmethod
    def new_builder(cls, parent: FilterContext | None = None) -> FilterContextBuilder:
        return cls(parent)

    def with_metadata(self, metadata: Any) -> FilterContextBuilder:
        self._metadata = metadata
        return self

    def with_offset(self, offset: FileRecordOffset) -> FilterContextBuilder:
        self._offset = offset
        return self

    def with_topic(self, topic: str | None) -> FilterContextBuilder:
        self._topic = topic
        return self

    def with_partition(self, partition: int | None) -> FilterContextBuilder:
        self._partition = partition
        return self

    def with_timestamp(self, timestamp: int | None) -> FilterContextBuilder:
        self._timestamp = timestamp
        return self

    def with_headers(self, headers: Mapping[str, Any] | None) -> FilterContextBuilder:
        self._headers = dict(headers or {})
        return self

    def with_key(self, key: str | None) -> FilterContextBuilder:
        self._key = key
        return self

    def with_error(self, error: FilterError | None) -> FilterContextBuilder:
        self._error = error
        return self

    def build(self) -> FilterContext:
        return FilterContext(
            metadata=self._metadata,
            offset=self._offset,
            topic=self._topic,
            partition=self._partition,
            timestamp=self._timestamp,
            headers=dict(self._headers),
            key=self._key,
            error=self._error,
        )
