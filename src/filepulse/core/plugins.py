# plugins.py
# SPDX-License-Identifier: MIT
"""Entry-point discovery for third-party filters and readers."""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from importlib import metadata
from typing import TYPE_CHECKING, cast

from .log import get_logger

if TYPE_CHECKING:  # pragma: no cover
    from .registries import FilterRegistry, ReaderRegistry

log = get_logger(__name__)

PLUGIN_GROUP = "filepulse.plugins"

PluginRegistrar = Callable[..., None]


def load_entrypoint_plugins(
    *,
    filter_registry: FilterRegistry,
    reader_registry: ReaderRegistry,
    group: str = PLUGIN_GROUP,
) -> list[str]:
    """Load plugins advertised under the ``group`` entry-point group.

    Each entry point resolves to a callable invoked as
    ``plugin(filter_registry=..., reader_registry=...)``. A plugin that
    fails to import or raises is logged and skipped; the others still load.

    Returns:
        list[str]: Names of the plugins that registered successfully.
    """
    try:
        entry_points = metadata.entry_points()
    except Exception as exc:  # pragma: no cover - importlib.metadata safety
        log.debug("Plugin discovery skipped: %s", exc)
        return []

    eps: Sequence[metadata.EntryPoint]
    if hasattr(entry_points, "select"):
        eps = cast(Sequence[metadata.EntryPoint], entry_points.select(group=group))
    else:
        grouped = cast(Mapping[str, Sequence[metadata.EntryPoint]], entry_points)
        eps = grouped.get(group, ())

    loaded: list[str] = []
    for ep in eps:
        try:
            func = cast(PluginRegistrar, ep.load())
        except Exception as exc:  # noqa: BLE001
            log.warning("Failed to import plugin %s: %s", ep.name, exc)
            continue
        try:
            func(filter_registry=filter_registry, reader_registry=reader_registry)
        except Exception as exc:  # noqa: BLE001
            log.warning("Plugin %s execution failed: %s", ep.name, exc)
            continue
        log.debug("Loaded plugin %s", ep.name)
        loaded.append(ep.name)
    return loaded
