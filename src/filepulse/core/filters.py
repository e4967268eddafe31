# filters.py
# SPDX-License-Identifier: MIT
"""Base classes for record filters."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from typing import TYPE_CHECKING, Any

from .context import FilterContext
from .records import FileRecord

if TYPE_CHECKING:  # pragma: no cover
    from .pipeline import RecordFilterPipeline

__all__ = ["FilterException", "AbstractRecordFilter", "FuncRecordFilter"]

Condition = Callable[[FilterContext, Mapping[str, Any]], bool]


class FilterException(RuntimeError):
    """Raised by a filter that cannot process a record."""


class AbstractRecordFilter:
    """Convenience base implementing the optional parts of the filter contract.

    Subclasses only need :meth:`apply`. Buffering subclasses also override
    :meth:`flush` and :meth:`clear`.

    Args:
        label (str | None): Name used in logs and error descriptors; defaults
            to the class name.
        condition (Condition | None): Predicate gating :meth:`accept`.
        ignore_failure (bool): Forward the original record when
            :meth:`apply` raises and no error pipeline is set.
        on_failure (RecordFilterPipeline | None): Pipeline receiving records
            this filter failed on.
    """

    def __init__(
        self,
        *,
        label: str | None = None,
        condition: Condition | None = None,
        ignore_failure: bool = False,
        on_failure: RecordFilterPipeline | None = None,
    ) -> None:
        self._label = label
        self._condition = condition
        self._ignore_failure = bool(ignore_failure)
        self._on_failure = on_failure

    def label(self) -> str:
        return self._label or type(self).__name__

    def accept(self, context: FilterContext, record: Mapping[str, Any]) -> bool:
        if self._condition is None:
            return True
        return bool(self._condition(context, record))

    def apply(
        self,
        context: FilterContext,
        record: Mapping[str, Any],
        has_next: bool,
    ) -> Iterable[dict[str, Any]]:  # pragma: no cover - interface
        raise NotImplementedError

    def flush(self) -> Iterable[FileRecord]:
        return ()

    def on_failure(self) -> RecordFilterPipeline | None:
        return self._on_failure

    def ignore_failure(self) -> bool:
        return self._ignore_failure

    def clear(self) -> None:
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}(label={self.label()!r})"


class FuncRecordFilter(AbstractRecordFilter):
    """Adapter turning a bare callable into a stateless filter.

    The callable receives ``(context, record)`` and may return a single
    mapping, an iterable of mappings, or ``None`` to drop the record.
    """

    def __init__(
        self,
        fn: Callable[[FilterContext, Mapping[str, Any]], Any],
        **kwargs: Any,
    ) -> None:
        kwargs.setdefault("label", getattr(fn, "__name__", None))
        super().__init__(**kwargs)
        self._fn = fn

    def apply(
        self,
        context: FilterContext,
        record: Mapping[str, Any],
        has_next: bool,
    ) -> Iterable[dict[str, Any]]:
        out = self._fn(context, record)
        if out is None:
            return []
        if isinstance(out, Mapping):
            return [dict(out)]
        return [dict(item) for item in out]
