# pipeline.py
# SPDX-License-Identifier: MIT
"""Record filter pipeline: sequences filters, drains buffers, recovers failures.

A pipeline is built once from an ordered list of filters. For every source
object the host calls :meth:`RecordFilterPipeline.initialize` and then feeds
batches of records through :meth:`RecordFilterPipeline.process`.

Each input record walks the chain stage by stage. A stage whose filter does
not accept the record is skipped. An accepting stage applies its filter and
re-feeds every produced record into the next stage. When a filter raises, its
buffered records are flushed through the rest of the chain first; the failed
record then goes to the filter's error pipeline, is forwarded unchanged
(``ignore_failure``), or the failure propagates to the caller.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass
from typing import Any, TypeVar

from .context import FilterContext, FilterContextBuilder, FilterError
from .interfaces import FileContext, RecordFilter
from .log import get_logger
from .records import FileRecord

__all__ = [
    "PipelineStateError",
    "PipelineStats",
    "RecordFilterPipeline",
    "iter_with_lookahead",
]

log = get_logger(__name__)

T = TypeVar("T")


class PipelineStateError(RuntimeError):
    """Raised when a pipeline is used before being initialized."""


def iter_with_lookahead(items: Iterable[T]) -> Iterator[tuple[T, bool]]:
    """Yield ``(item, more)`` pairs where ``more`` tells if another item follows.

    Only one item is read ahead, so lazy inputs stay lazy.
    """
    iterator = iter(items)
    sentinel: Any = object()
    current = next(iterator, sentinel)
    while current is not sentinel:
        following = next(iterator, sentinel)
        yield current, following is not sentinel
        current = following


@dataclass(slots=True)
class PipelineStats:
    """Counters collected while records flow through a pipeline.

    ``failures`` counts every failed ``apply`` call; ``routed`` and
    ``ignored`` count the ones recovered through an error pipeline or by
    forwarding the original record.
    """

    records_in: int = 0
    records_out: int = 0
    flushed: int = 0
    failures: int = 0
    routed: int = 0
    ignored: int = 0

    def as_dict(self) -> dict[str, int]:
        return {
            "records_in": int(self.records_in),
            "records_out": int(self.records_out),
            "flushed": int(self.flushed),
            "failures": int(self.failures),
            "routed": int(self.routed),
            "ignored": int(self.ignored),
        }


class RecordFilterPipeline:
    """Ordered, immutable chain of record filters.

    Stages are addressed by index; stage ``i + 1`` receives the output of
    stage ``i``. An empty chain is the identity transform.

    Instances are not thread-safe: filters hold mutable buffers, so one
    pipeline (including its error pipelines) belongs to one worker at a time.
    """

    def __init__(self, filters: Sequence[RecordFilter] = ()) -> None:
        if filters is None:
            raise ValueError("filters can't be None")
        self._stages: tuple[RecordFilter, ...] = tuple(filters)
        self._file_context: FileContext | None = None
        self.stats = PipelineStats()

    @property
    def filters(self) -> tuple[RecordFilter, ...]:
        return self._stages

    def __repr__(self) -> str:
        labels = ", ".join(f.label() for f in self._stages)
        return f"RecordFilterPipeline([{labels}])"

    # ------------------------------------------------------------------
    # Driver
    # ------------------------------------------------------------------

    def initialize(self, context: FileContext) -> None:
        """Prepare every stage for a new source object.

        Error pipelines are initialized with the same context, then each
        filter is cleared so no buffered record crosses a source-object
        boundary.
        """
        self._file_context = context
        for stage in self._stages:
            on_failure = stage.on_failure()
            if on_failure is not None:
                on_failure.initialize(context)
            stage.clear()

    def process(self, records: Iterable[FileRecord], has_next: bool) -> list[FileRecord]:
        """Run a batch of input records through the chain.

        Args:
            records (Iterable[FileRecord]): Batch read from the current
                source object.
            has_next (bool): Whether another batch follows for the same
                source object.

        Returns:
            list[FileRecord]: Output records, in input order.

        Raises:
            PipelineStateError: If :meth:`initialize` was never called.
        """
        file_context = self._require_context()
        if not self._stages:
            out = list(records)
            self.stats.records_in += len(out)
            self.stats.records_out += len(out)
            return out

        results: list[FileRecord] = []
        for record, more in iter_with_lookahead(records):
            self.stats.records_in += 1
            context = self._context_for(record, file_context.metadata)
            results.extend(self._dispatch(0, context, record.value, has_next or more))
        self.stats.records_out += len(results)
        return results

    def apply(self, context: FilterContext, record: dict[str, Any], has_next: bool) -> list[FileRecord]:
        """Run a single record with an existing context through the chain.

        This is the entry point used when the pipeline serves as another
        filter's error pipeline.
        """
        if not self._stages:
            return [self._new_record_for(context, record)]
        return self._dispatch(0, context, record, has_next)

    def _require_context(self) -> FileContext:
        if self._file_context is None:
            raise PipelineStateError("Cannot apply this pipeline, no context initialized")
        return self._file_context

    @staticmethod
    def _context_for(record: FileRecord, metadata: Any) -> FilterContext:
        return FilterContextBuilder.new_builder().with_metadata(metadata).with_offset(record.offset).build()

    # ------------------------------------------------------------------
    # Stage dispatch
    # ------------------------------------------------------------------

    def _dispatch(
        self,
        index: int,
        context: FilterContext,
        record: dict[str, Any],
        has_next: bool,
    ) -> list[FileRecord]:
        """Apply stage ``index`` and everything after it to one record."""
        stage = self._stages[index]
        last = index + 1 == len(self._stages)

        if not stage.accept(context, record):
            if not last:
                return self._dispatch(index + 1, context, record, has_next)
            out: list[FileRecord] = []
            if not has_next:
                # end of stream: the filter may still hold records from earlier calls
                out.extend(self._flush(index, context))
            out.append(self._new_record_for(context, record))
            return out

        try:
            produced = list(stage.apply(context, record, has_next))
        except Exception as exc:
            self.stats.failures += 1
            if stage.on_failure() is None and not stage.ignore_failure():
                # logged before draining: a drained record may fail further down
                log.error(
                    "Error occurred while executing filter '%s' on record=%r",
                    stage.label(),
                    record,
                )
                self._flush(index, context)
                raise
            out = self._flush(index, context)
            out.extend(self._recover(index, context, record, has_next, exc))
            return out

        outputs = [self._new_record_for(context, value) for value in produced]
        if last:
            return outputs
        results: list[FileRecord] = []
        for output in outputs:
            derived = FilterContextBuilder.new_builder(context).build()
            results.extend(self._dispatch(index + 1, derived, output.value, has_next))
        return results

    def _recover(
        self,
        index: int,
        context: FilterContext,
        record: dict[str, Any],
        has_next: bool,
        exc: Exception,
    ) -> list[FileRecord]:
        """Route a record whose filter failed; buffers are already flushed."""
        stage = self._stages[index]
        on_failure = stage.on_failure()
        if on_failure is not None:
            self.stats.routed += 1
            log.debug("Filter '%s' failed (%s); routing record to its error pipeline", stage.label(), exc)
            error_context = (
                FilterContextBuilder.new_builder(context)
                .with_error(FilterError(message=str(exc), filter=stage.label()))
                .build()
            )
            return on_failure.apply(error_context, record, has_next)

        self.stats.ignored += 1
        log.debug("Filter '%s' failed (%s); forwarding original record", stage.label(), exc)
        if index + 1 < len(self._stages):
            return self._dispatch(index + 1, context, record, has_next)
        return [self._new_record_for(context, record)]

    def _flush(self, index: int, context: FilterContext) -> list[FileRecord]:
        """Drain stage ``index`` and push its buffered records down the chain.

        Buffered records keep their own offsets and destination hints; the
        lookahead inside a drain only reflects the drain itself.
        """
        buffered = self._stages[index].flush()
        if index + 1 == len(self._stages):
            drained = list(buffered)
            self.stats.flushed += len(drained)
            return drained

        results: list[FileRecord] = []
        for buffered_record, more in iter_with_lookahead(buffered):
            self.stats.flushed += 1
            renewed = (
                FilterContextBuilder.new_builder()
                .with_metadata(context.metadata)
                .with_offset(buffered_record.offset)
                .with_topic(buffered_record.topic)
                .with_partition(buffered_record.partition)
                .with_timestamp(buffered_record.timestamp)
                .with_headers(buffered_record.headers)
                .with_key(buffered_record.key)
                .build()
            )
            results.extend(self._dispatch(index + 1, renewed, buffered_record.value, more))
        return results

    @staticmethod
    def _new_record_for(context: FilterContext, value: dict[str, Any]) -> FileRecord:
        return FileRecord(
            value=value,
            offset=context.offset,
            topic=context.topic,
            partition=context.partition,
            timestamp=context.timestamp,
            headers=dict(context.headers),
            key=context.key,
        )
