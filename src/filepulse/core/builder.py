# builder.py
# SPDX-License-Identifier: MIT
"""Turn declarative filter specs into live pipelines."""
from __future__ import annotations

from collections.abc import Sequence

from .config import FilterSpec
from .interfaces import RecordFilter
from .log import get_logger
from .pipeline import RecordFilterPipeline
from .registries import FilterRegistry, default_filter_registry

__all__ = ["build_filter", "build_filter_pipeline"]

log = get_logger(__name__)


def build_filter(spec: FilterSpec, registry: FilterRegistry) -> RecordFilter:
    """Instantiate one filter, building its error pipeline first if declared."""
    on_failure = build_filter_pipeline(spec.on_failure, registry) if spec.on_failure else None
    return registry.create(
        spec.kind,
        spec.options,
        label=spec.label or spec.kind,
        ignore_failure=spec.ignore_failure,
        on_failure=on_failure,
    )


def build_filter_pipeline(
    specs: Sequence[FilterSpec],
    registry: FilterRegistry | None = None,
) -> RecordFilterPipeline:
    """Build a pipeline whose stage order follows ``specs``.

    Args:
        specs (Sequence[FilterSpec]): Filters in execution order; empty
            yields the identity pipeline.
        registry (FilterRegistry | None): Registry resolving filter kinds.
            Defaults to the standard filters.

    Returns:
        RecordFilterPipeline: The uninitialized pipeline.

    Raises:
        ValueError: If a spec names an unknown kind or invalid options.
    """
    reg = registry if registry is not None else default_filter_registry()
    filters = [build_filter(spec, reg) for spec in specs]
    log.debug("Built filter pipeline: %s", [f.label() for f in filters])
    return RecordFilterPipeline(filters)
