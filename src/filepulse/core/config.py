# config.py
# SPDX-License-Identifier: MIT
"""Configuration models and helpers for filepulse runs.

The dataclasses below describe which reader extracts records, which filters
(and error pipelines) transform them, where output goes, and how source
objects are identified. They are purely declarative; registries turn them
into live objects. Configurations load from JSON or TOML.
"""
from __future__ import annotations

import json
import tomllib
import types
from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple, Type, TypeVar, Union, get_args, get_origin, get_type_hints

from .log import PACKAGE_LOGGER_NAME, configure_logging

__all__ = [
    "FilterSpec",
    "PipelineConfig",
    "ReaderConfig",
    "OutputConfig",
    "OffsetConfig",
    "LoggingConfig",
    "FilePulseConfig",
    "load_config_from_path",
]

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

@dataclass(slots=True)
class FilterSpec:
    """Declarative description of one filter.

    Attributes:
        kind (str): Registered filter kind, e.g. ``"group_row"``.
        label (str | None): Name used in logs and error descriptors.
        options (dict[str, Any]): Keyword arguments for the filter factory.
        ignore_failure (bool): Forward the original record when the filter
            raises and no error pipeline is declared.
        on_failure (list[FilterSpec]): Filters of the error pipeline; empty
            means no error pipeline.
    """
    kind: str = ""
    label: Optional[str] = None
    options: Dict[str, Any] = field(default_factory=dict)
    ignore_failure: bool = False
    on_failure: list[FilterSpec] = field(default_factory=list)


@dataclass(slots=True)
class PipelineConfig:
    """Ordered filters plus failure policy at the file level.

    ``fail_fast`` aborts the whole run on the first file whose records hit
    an unrecoverable filter failure; otherwise that file is logged and
    skipped.
    """
    filters: list[FilterSpec] = field(default_factory=list)
    fail_fast: bool = False


@dataclass(slots=True)
class ReaderConfig:
    kind: str = "row"
    options: Dict[str, Any] = field(default_factory=dict)
    batch_size: int = 100


@dataclass(slots=True)
class OutputConfig:
    """Default destination applied to output records lacking one."""
    topic: Optional[str] = None
    partition: Optional[int] = None


@dataclass(slots=True)
class OffsetConfig:
    """Attributes identifying a source object, joined with ``+``."""
    strategy: str = "path+name"


@dataclass(slots=True)
class LoggingConfig:
    level: int | str = "INFO"
    propagate: bool = False
    fmt: Optional[str] = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    logger_name: str = PACKAGE_LOGGER_NAME

    def apply(self) -> None:
        configure_logging(
            level=self.level,
            propagate=self.propagate,
            fmt=self.fmt,
            logger_name=self.logger_name or PACKAGE_LOGGER_NAME,
        )


# ---------------------------------------------------------------------------
# Master config
# ---------------------------------------------------------------------------

@dataclass(slots=True)
class FilePulseConfig:
    """Declarative spec for a filepulse run.

    Tables map one-to-one onto TOML sections::

        [reader]
        kind = "row"
        batch_size = 50

        [[pipeline.filters]]
        kind = "group_row"
        options = { fields = ["id"] }

        [[pipeline.filters.on_failure]]
        kind = "drop"
    """
    reader: ReaderConfig = field(default_factory=ReaderConfig)
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    offset: OffsetConfig = field(default_factory=OffsetConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def validate(self) -> None:
        """Check structural constraints that dataclass typing cannot express.

        Raises:
            ValueError: On a non-positive batch size, a filter spec without a
                kind, or an empty offset strategy.
        """
        if int(self.reader.batch_size) < 1:
            raise ValueError(f"reader.batch_size must be >= 1; got {self.reader.batch_size!r}.")
        if not (self.reader.kind or "").strip():
            raise ValueError("reader.kind must be set.")
        _validate_filter_specs(self.pipeline.filters, "pipeline.filters")
        if not (self.offset.strategy or "").strip():
            raise ValueError("offset.strategy must not be empty.")

    # -------------------------
    # Serialization helpers
    # -------------------------
    def to_dict(self) -> Dict[str, Any]:
        return _dataclass_to_dict(self)

    def to_json(self, path: Path | str, *, indent: int = 2) -> str:
        """Write the configuration as JSON and return the path written."""
        target = Path(path)
        target.write_text(json.dumps(self.to_dict(), indent=indent, sort_keys=True), encoding="utf-8")
        return str(target)

    @classmethod
    def from_dict(cls: Type[T], data: Mapping[str, Any]) -> T:
        return _dataclass_from_dict(cls, data)

    @classmethod
    def from_json(cls: Type[T], path: Path | str) -> T:
        payload = json.loads(Path(path).read_text(encoding="utf-8"))
        return cls.from_dict(payload)  # type: ignore[attr-defined]

    @classmethod
    def from_toml(cls: Type[T], path: Path | str) -> T:
        """Load a configuration from a TOML document.

        Raises:
            TypeError: If the document does not parse to a mapping.
        """
        data = tomllib.loads(Path(path).read_bytes().decode("utf-8"))
        if not isinstance(data, Mapping):
            raise TypeError(f"Top-level TOML document must be a mapping; got {type(data).__name__}.")
        return cls.from_dict(data)  # type: ignore[attr-defined]


def load_config_from_path(path: str | Path) -> FilePulseConfig:
    """Load a FilePulseConfig from a ``.toml`` or ``.json`` file.

    Raises:
        ValueError: If the file extension is neither.
    """
    p = Path(path)
    suffix = p.suffix.lower()
    if suffix == ".toml":
        return FilePulseConfig.from_toml(p)
    if suffix == ".json":
        return FilePulseConfig.from_json(p)
    raise ValueError(f"Unsupported config extension {p.suffix!r}; expected .toml or .json.")


def _validate_filter_specs(specs: list[FilterSpec], where: str) -> None:
    for i, spec in enumerate(specs):
        if not (spec.kind or "").strip():
            raise ValueError(f"{where}[{i}].kind must be set.")
        _validate_filter_specs(spec.on_failure, f"{where}[{i}].on_failure")


# ---------------------------------------------------------------------------
# Dataclass <-> mapping
# ---------------------------------------------------------------------------

def _dataclass_to_dict(obj: Any) -> Dict[str, Any]:
    """Serialize a dataclass to a JSON-friendly dict, skipping None fields."""
    result: Dict[str, Any] = {}
    for f in fields(obj):
        value = getattr(obj, f.name)
        if value is None:
            continue
        result[f.name] = _serialize_value(value)
    return result


def _serialize_value(value: Any) -> Any:
    if is_dataclass(value) and not isinstance(value, type):
        return _dataclass_to_dict(value)
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, (list, tuple)):
        return [_serialize_value(v) for v in value]
    if isinstance(value, dict):
        return {str(k): _serialize_value(v) for k, v in value.items() if v is not None}
    return value


def _dataclass_from_dict(cls: Type[T], data: Mapping[str, Any] | None) -> T:
    """Instantiate dataclass ``cls`` from a mapping, recursing into nested types.

    Raises:
        ValueError: If ``data`` holds keys that are not fields of ``cls``.
    """
    if data is None:
        return cls()  # type: ignore[call-arg]
    if not isinstance(data, Mapping):
        raise TypeError(f"Expected a mapping for {cls.__name__}; got {type(data).__name__}.")
    type_hints = get_type_hints(cls)
    known = {f.name for f in fields(cls)}  # type: ignore[arg-type]
    unknown = sorted(str(k) for k in data if k not in known)
    if unknown:
        raise ValueError(
            f"Unsupported keys for {cls.__name__}: {', '.join(unknown)}. "
            f"Allowed keys: {', '.join(sorted(known))}"
        )

    kwargs: Dict[str, Any] = {}
    for f in fields(cls):  # type: ignore[arg-type]
        if f.name not in data:
            continue
        kwargs[f.name] = _coerce_value(type_hints.get(f.name, f.type), data[f.name])
    return cls(**kwargs)


def _coerce_value(expected_type: Any, value: Any) -> Any:
    """Coerce ``value`` into the shape implied by ``expected_type``."""
    base_type, _ = _strip_optional(expected_type)
    if value is None:
        return None
    if isinstance(base_type, type) and is_dataclass(base_type):
        return _dataclass_from_dict(base_type, value)
    origin = get_origin(base_type)
    if origin in (list, tuple):
        args = get_args(base_type)
        inner = args[0] if args else Any
        items = [_coerce_value(inner, v) for v in value]
        return tuple(items) if origin is tuple else items
    if origin is dict:
        return dict(value)
    if base_type is Path:
        return Path(value)
    if base_type in (str, int, float, bool):
        return base_type(value)
    return value


def _strip_optional(typ: Any) -> Tuple[Any, bool]:
    """Return ``(inner_type, True)`` for ``Optional[X]`` / ``X | None``."""
    origin = get_origin(typ)
    if origin is Union or origin is types.UnionType:
        args = [arg for arg in get_args(typ) if arg is not type(None)]
        if len(args) == 1:
            inner, _ = _strip_optional(args[0])
            return inner, True
    return typ, False
