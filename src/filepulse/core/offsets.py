# offsets.py
# SPDX-License-Identifier: MIT
"""Map source objects and records to durable partition/offset mappings."""

from __future__ import annotations

from typing import Any

from .interfaces import FileObjectMeta
from .records import FileRecord

__all__ = ["OFFSET_ATTRIBUTES", "DefaultOffsetPolicy"]

# Strategy attribute -> FileObjectMeta field.
OFFSET_ATTRIBUTES: dict[str, str] = {
    "name": "name",
    "path": "path",
    "lastModified": "last_modified",
    "inode": "inode",
    "hash": "hash",
}


class DefaultOffsetPolicy:
    """Identify a source object by a ``+``-separated list of attributes.

    ``"path+name"`` and ``"name+path"`` are equivalent; attributes are kept
    in the canonical order of :data:`OFFSET_ATTRIBUTES`.

    Raises:
        ValueError: If the strategy is empty or names an unknown attribute.
    """

    def __init__(self, strategy: str = "path+name") -> None:
        parts = [p.strip() for p in (strategy or "").split("+") if p.strip()]
        if not parts:
            raise ValueError("Offset strategy must name at least one attribute")
        unknown = sorted(set(parts) - set(OFFSET_ATTRIBUTES))
        if unknown:
            raise ValueError(
                f"Unknown offset attribute(s) {', '.join(unknown)}; "
                f"expected one of {', '.join(OFFSET_ATTRIBUTES)}"
            )
        self.attributes: tuple[str, ...] = tuple(a for a in OFFSET_ATTRIBUTES if a in parts)

    def to_partition(self, metadata: FileObjectMeta) -> dict[str, Any]:
        """Return the source partition identifying ``metadata``.

        Raises:
            ValueError: If the object lacks a value for a chosen attribute
                (e.g. ``inode`` on a filesystem without inodes).
        """
        partition: dict[str, Any] = {}
        for attr in self.attributes:
            value = getattr(metadata, OFFSET_ATTRIBUTES[attr], None)
            if value is None:
                raise ValueError(f"Source object {metadata.uri!r} has no value for offset attribute {attr!r}")
            partition[attr] = value
        return partition

    def to_offset(self, record: FileRecord) -> dict[str, Any]:
        return record.offset.to_source_offset()

    def __repr__(self) -> str:
        return f"DefaultOffsetPolicy({'+'.join(self.attributes)!r})"
