# interfaces.py
# SPDX-License-Identifier: MIT
"""Protocols and shared data types for filters, readers, and sinks."""

from __future__ import annotations

import os
import zlib
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import (
    TYPE_CHECKING,
    Any,
    Protocol,
    runtime_checkable,
)

from .records import timestamp_millis

if TYPE_CHECKING:  # pragma: no cover - type checking only
    from .context import FilterContext
    from .pipeline import RecordFilterPipeline
    from .records import FileRecord


# -----------------------------------------------------------------------------
# Shared data types
# -----------------------------------------------------------------------------

_HASH_CHUNK_BYTES = 64 * 1024


@dataclass(frozen=True, slots=True)
class FileObjectMeta:
    """
    Identity of a source object (typically a local file).

    The pipeline never inspects these fields; it only hands the object to
    filters through their context. Readers and the offset policy use them.

    Attributes:
        name (str): Base name, e.g. ``data.csv``.
        path (str): Parent directory of the object.
        uri (str): Canonical URI, e.g. ``file:///tmp/data.csv``.
        size (int | None): Content length in bytes.
        last_modified (int | None): Modification time in epoch milliseconds.
        inode (int | None): Inode number where the filesystem exposes one.
        hash (str | None): CRC32 digest of the content, hex encoded.
    """

    name: str
    path: str
    uri: str
    size: int | None = None
    last_modified: int | None = None
    inode: int | None = None
    hash: str | None = None

    @classmethod
    def from_path(cls, path: str | os.PathLike[str], *, compute_hash: bool = True) -> FileObjectMeta:
        """Describe a local file.

        Args:
            path (str | os.PathLike[str]): File to describe.
            compute_hash (bool): Whether to read the file and compute its
                CRC32 digest.

        Returns:
            FileObjectMeta: Metadata for the file.
        """
        p = Path(path).resolve()
        st = p.stat()
        digest = None
        if compute_hash:
            crc = 0
            with p.open("rb") as fp:
                for chunk in iter(lambda: fp.read(_HASH_CHUNK_BYTES), b""):
                    crc = zlib.crc32(chunk, crc)
            digest = format(crc & 0xFFFFFFFF, "08x")
        return cls(
            name=p.name,
            path=str(p.parent),
            uri=p.as_uri(),
            size=st.st_size,
            last_modified=timestamp_millis(st.st_mtime),
            inode=st.st_ino or None,
            hash=digest,
        )

    def as_dict(self) -> dict[str, Any]:
        """Return the metadata using the attribute names of offset strategies."""
        return {
            "name": self.name,
            "path": self.path,
            "uri": self.uri,
            "size": self.size,
            "lastModified": self.last_modified,
            "inode": self.inode,
            "hash": self.hash,
        }


@dataclass(frozen=True, slots=True)
class FileContext:
    """Source-object context handed to a pipeline when a new object starts.

    ``metadata`` is opaque to the pipeline; any descriptor works, though the
    bundled readers and offset policy expect :class:`FileObjectMeta`.
    """

    metadata: Any


# -----------------------------------------------------------------------------
# Filter protocol
# -----------------------------------------------------------------------------


@runtime_checkable
class RecordFilter(Protocol):
    """One stage of a record filter pipeline.

    Stateless filters transform each record independently. Buffering filters
    keep records across ``apply`` calls and release them either from
    ``apply`` (typically once ``has_next`` is False) or from ``flush``.
    """

    def label(self) -> str:
        """Diagnostic name used in logs and error descriptors."""
        ...

    def accept(self, context: FilterContext, record: Mapping[str, Any]) -> bool:
        """Return True when this filter should be applied to ``record``."""
        ...

    def apply(
        self,
        context: FilterContext,
        record: Mapping[str, Any],
        has_next: bool,
    ) -> Iterable[dict[str, Any]]:
        """Transform ``record`` into zero, one, or many records.

        ``has_next`` tells whether at least one more input record follows in
        the still-open stream. Raising marks the record as failed.
        """
        ...

    def flush(self) -> Iterable[FileRecord]:
        """Release (and forget) every buffered record."""
        ...

    def on_failure(self) -> RecordFilterPipeline | None:
        """Pipeline receiving records this filter failed on, if any."""
        ...

    def ignore_failure(self) -> bool:
        """Whether a failure without an error pipeline is swallowed."""
        ...

    def clear(self) -> None:
        """Drop any internal state before a new source object starts."""
        ...


# -----------------------------------------------------------------------------
# Reader and sink protocols
# -----------------------------------------------------------------------------


@runtime_checkable
class FileInputReader(Protocol):
    """Produces the lazy record sequence of one source object."""

    def read(self, metadata: FileObjectMeta) -> Iterator[FileRecord]:
        ...


class RecordSink(Protocol):
    """Destination for pipeline output."""

    def open(self) -> None:  # pragma: no cover - interface
        ...

    def write(self, record: Mapping[str, Any]) -> None:  # pragma: no cover - interface
        ...

    def close(self) -> None:  # pragma: no cover - interface
        ...
