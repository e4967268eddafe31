# readers.py
# SPDX-License-Identifier: MIT
"""Local file readers producing lazy record sequences."""

from __future__ import annotations

import xml.etree.ElementTree as ET
from collections import deque
from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, ClassVar
from urllib.parse import urlparse
from urllib.request import url2pathname

from ..core.interfaces import FileObjectMeta
from ..core.log import get_logger
from ..core.records import (
    DEFAULT_MESSAGE_FIELD,
    EMPTY_OFFSET,
    BytesRecordOffset,
    FileRecord,
    LineRecordOffset,
)

log = get_logger(__name__)

__all__ = [
    "RowFileInputReader",
    "BytesArrayInputReader",
    "FileInputMetadataReader",
    "XMLFileInputReader",
    "local_path_of",
]


def local_path_of(metadata: FileObjectMeta) -> Path:
    """Resolve the local filesystem path of a ``file://`` object.

    Raises:
        ValueError: If the URI does not use the ``file`` scheme.
    """
    parsed = urlparse(metadata.uri)
    if parsed.scheme != "file":
        raise ValueError(f"Unsupported URI scheme for local reader: {metadata.uri!r}")
    return Path(url2pathname(parsed.path))


@dataclass
class RowFileInputReader:
    """Emit one ``{"message": line}`` record per line of a text file.

    Line terminators are stripped; offsets carry the byte range of the raw
    line and its 1-based row number.

    Attributes:
        encoding (str): Text encoding of the file.
        skip_headers (int): Leading lines to skip. When positive, skipped
            lines are attached to every record under ``headers``.
        skip_footers (int): Trailing lines to skip.
    """

    encoding: str = "utf-8"
    skip_headers: int = 0
    skip_footers: int = 0

    def __post_init__(self) -> None:
        if self.skip_headers < 0 or self.skip_footers < 0:
            raise ValueError("skip_headers and skip_footers must be >= 0")

    def read(self, metadata: FileObjectMeta) -> Iterator[FileRecord]:
        path = local_path_of(metadata)
        headers: list[str] = []
        pending: deque[FileRecord] = deque()
        position = 0
        with path.open("rb") as fp:
            for row, raw in enumerate(fp, start=1):
                start, position = position, position + len(raw)
                line = raw.decode(self.encoding).rstrip("\r\n")
                if row <= self.skip_headers:
                    headers.append(line)
                    continue
                value: dict[str, object] = {DEFAULT_MESSAGE_FIELD: line}
                if headers:
                    value["headers"] = list(headers)
                pending.append(FileRecord(value=value, offset=LineRecordOffset(start, position, row)))
                # hold back enough lines to drop the footers at EOF
                if len(pending) > self.skip_footers:
                    yield pending.popleft()
        if pending:
            log.debug("Skipped %d footer line(s) in %s", len(pending), metadata.uri)


@dataclass
class BytesArrayInputReader:
    """Emit the whole file as a single ``{"message": bytes}`` record."""

    def read(self, metadata: FileObjectMeta) -> Iterator[FileRecord]:
        data = local_path_of(metadata).read_bytes()
        yield FileRecord(value={DEFAULT_MESSAGE_FIELD: data}, offset=BytesRecordOffset(0, len(data)))


@dataclass
class FileInputMetadataReader:
    """Emit a single record describing the file itself."""

    requires_hash: ClassVar[bool] = True

    def read(self, metadata: FileObjectMeta) -> Iterator[FileRecord]:
        yield FileRecord(
            value={
                "name": metadata.name,
                "path": metadata.path,
                "hash": metadata.hash,
                "lastModified": metadata.last_modified,
                "size": metadata.size,
                "inode": metadata.inode,
            },
            offset=EMPTY_OFFSET,
        )


XPATH_RESULT_TYPES = ("NODESET", "STRING")


@dataclass
class XMLFileInputReader:
    """Extract records from an XML document with an XPath expression.

    Expressions use the XPath subset understood by ElementTree and are
    evaluated against the document: ``/`` selects the document itself,
    ``/a/b`` walks down from the root element ``a``, ``//b`` matches at any
    depth and a relative path starts at the root element.

    With ``NODESET`` every selected element becomes a record holding its
    attributes and child elements as fields; text mixed with either is kept
    under ``value``. With ``STRING`` a single ``{"message": text}`` record
    carries the text content of the first selected element.

    Attributes:
        xpath_expression (str): Expression selecting the record elements.
        xpath_result_type (str): ``NODESET`` or ``STRING``.
        force_array_on_fields (list[str] | str): Element names always
            converted to lists, even when they occur once. A comma-separated
            string is accepted.

    Raises:
        ValueError: On an unknown result type or an invalid expression.
    """

    xpath_expression: str = "/"
    xpath_result_type: str = "NODESET"
    force_array_on_fields: list[str] | str = field(default_factory=list)

    def __post_init__(self) -> None:
        self.xpath_expression = (self.xpath_expression or "").strip()
        if not self.xpath_expression:
            raise ValueError("xpath_expression must not be empty")
        self.xpath_result_type = str(self.xpath_result_type).upper()
        if self.xpath_result_type not in XPATH_RESULT_TYPES:
            raise ValueError(
                f"Unsupported xpath_result_type {self.xpath_result_type!r}; "
                f"expected one of {', '.join(XPATH_RESULT_TYPES)}"
            )
        fields = self.force_array_on_fields
        if isinstance(fields, str):
            fields = fields.split(",")
        self.force_array_on_fields = [f.strip() for f in fields if f.strip()]
        # compile-check the expression against an empty element
        _select_elements(ET.Element("_"), self.xpath_expression)

    def read(self, metadata: FileObjectMeta) -> Iterator[FileRecord]:
        root = ET.parse(local_path_of(metadata)).getroot()
        nodes = _select_elements(root, self.xpath_expression)
        if self.xpath_result_type == "STRING":
            text = "".join(nodes[0].itertext()).strip() if nodes else ""
            yield FileRecord(value={DEFAULT_MESSAGE_FIELD: text}, offset=EMPTY_OFFSET)
            return

        forced = frozenset(self.force_array_on_fields)
        if self.xpath_expression == "/":
            yield FileRecord(value={root.tag: _element_value(root, forced)}, offset=EMPTY_OFFSET)
            return
        for node in nodes:
            value = _element_value(node, forced)
            if not isinstance(value, dict):
                value = {node.tag: value}
            yield FileRecord(value=value, offset=EMPTY_OFFSET)
        log.debug("Selected %d element(s) with %r in %s", len(nodes), self.xpath_expression, metadata.uri)


def _select_elements(root: ET.Element, expression: str) -> list[ET.Element]:
    try:
        if expression == "/":
            return [root]
        if expression.startswith("//"):
            return root.findall("." + expression)
        if expression.startswith("/"):
            first, _, rest = expression[1:].partition("/")
            if first not in ("*", root.tag):
                return []
            return root.findall(rest) if rest else [root]
        return root.findall(expression)
    except SyntaxError as exc:
        raise ValueError(f"Invalid XPath expression {expression!r}: {exc}") from exc


def _element_value(elem: ET.Element, forced: frozenset[str]) -> Any:
    """Convert an element to a string (plain text leaf) or a dict."""
    fields: dict[str, Any] = dict(elem.attrib)
    lists: set[str] = set()
    for child in elem:
        value = _element_value(child, forced)
        tag = child.tag
        if tag in lists:
            fields[tag].append(value)
        elif tag in forced:
            fields[tag] = [value]
            lists.add(tag)
        elif tag in fields:
            fields[tag] = [fields[tag], value]
            lists.add(tag)
        else:
            fields[tag] = value
    text = (elem.text or "").strip()
    if not fields:
        return text or None
    if text:
        fields["value"] = text
    return fields
