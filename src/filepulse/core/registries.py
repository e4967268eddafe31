# registries.py
# SPDX-License-Identifier: MIT
"""Registries mapping configuration kinds to filter and reader factories."""
from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from .interfaces import FileInputReader, RecordFilter
from .log import get_logger

__all__ = [
    "FilterRegistry",
    "ReaderRegistry",
    "RegistryBundle",
    "default_filter_registry",
    "default_reader_registry",
    "default_registries",
]

log = get_logger(__name__)

P = TypeVar("P")
Factory = Callable[..., Any]


@dataclass
class _Registry(Generic[P]):
    """Kind -> factory mapping shared by the concrete registries."""

    _factories: dict[str, Factory] = field(default_factory=dict)
    label: str = "component"

    def register(self, kind: str, factory: Factory, *, replace: bool = False) -> None:
        """Register ``factory`` under ``kind``.

        Raises:
            ValueError: If ``kind`` is taken and ``replace`` is False.
        """
        if not replace and kind in self._factories:
            raise ValueError(f"{self.label.capitalize()} kind {kind!r} is already registered")
        self._factories[kind] = factory

    def get(self, kind: str) -> Factory:
        try:
            return self._factories[kind]
        except KeyError:
            raise ValueError(
                f"Unknown {self.label} kind {kind!r}; registered: {', '.join(self.kinds()) or '<none>'}"
            ) from None

    def kinds(self) -> list[str]:
        return sorted(self._factories)

    def __contains__(self, kind: object) -> bool:
        return kind in self._factories

    def create(self, kind: str, options: Mapping[str, Any] | None = None, **kwargs: Any) -> P:
        """Instantiate ``kind`` from ``options`` plus structural ``kwargs``.

        ``kwargs`` win over same-named options.

        Raises:
            ValueError: If the kind is unknown or the factory rejects the
                options.
        """
        factory = self.get(kind)
        merged = dict(options or {})
        merged.update(kwargs)
        try:
            return factory(**merged)
        except TypeError as exc:
            raise ValueError(f"Invalid options for {self.label} kind {kind!r}: {exc}") from exc


class FilterRegistry(_Registry[RecordFilter]):
    """Registry of filter factories.

    Factories are called with keyword arguments: the spec's options plus
    ``label``, ``ignore_failure`` and ``on_failure``. Subclasses of
    :class:`~filepulse.core.filters.AbstractRecordFilter` fit as-is.
    """

    def __init__(self) -> None:
        super().__init__(label="filter")

    def filter(self, kind: str, *, replace: bool = False) -> Callable[[Factory], Factory]:
        """Decorator registering a filter class or factory under ``kind``."""
        def decorator(factory: Factory) -> Factory:
            self.register(kind, factory, replace=replace)
            return factory

        return decorator


class ReaderRegistry(_Registry[FileInputReader]):
    """Registry of reader factories, called with the reader options."""

    def __init__(self) -> None:
        super().__init__(label="reader")

    def reader(self, kind: str, *, replace: bool = False) -> Callable[[Factory], Factory]:
        """Decorator registering a reader class or factory under ``kind``."""
        def decorator(factory: Factory) -> Factory:
            self.register(kind, factory, replace=replace)
            return factory

        return decorator


@dataclass
class RegistryBundle:
    filters: FilterRegistry
    readers: ReaderRegistry


def default_filter_registry() -> FilterRegistry:
    """Return a new registry preloaded with the standard filters."""
    from ..filters.standard import DropFilter, ExcludeFilter, FailFilter, GroupRowFilter

    reg = FilterRegistry()
    reg.register("drop", DropFilter)
    reg.register("fail", FailFilter)
    reg.register("exclude", ExcludeFilter)
    reg.register("group_row", GroupRowFilter)
    return reg


def default_reader_registry() -> ReaderRegistry:
    """Return a new registry preloaded with the local file readers."""
    from ..sources.readers import (
        BytesArrayInputReader,
        FileInputMetadataReader,
        RowFileInputReader,
        XMLFileInputReader,
    )

    reg = ReaderRegistry()
    reg.register("row", RowFileInputReader)
    reg.register("bytes", BytesArrayInputReader)
    reg.register("metadata", FileInputMetadataReader)
    reg.register("xml", XMLFileInputReader)
    return reg


def default_registries(*, load_plugins: bool = True) -> RegistryBundle:
    """Build fresh default registries, optionally extended by entry-point plugins."""
    bundle = RegistryBundle(filters=default_filter_registry(), readers=default_reader_registry())
    if load_plugins:
        from .plugins import load_entrypoint_plugins

        load_entrypoint_plugins(filter_registry=bundle.filters, reader_registry=bundle.readers)
    return bundle
