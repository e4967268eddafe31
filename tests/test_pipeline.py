import logging

import pytest

from filepulse.core.context import FilterContext
from filepulse.core.filters import AbstractRecordFilter, FilterException, FuncRecordFilter
from filepulse.core.interfaces import FileContext
from filepulse.core.pipeline import PipelineStateError, RecordFilterPipeline, iter_with_lookahead
from filepulse.core.records import FileRecord, LineRecordOffset


def _records(*ids):
    return [
        FileRecord(value={"id": rid}, offset=LineRecordOffset(i * 10, i * 10 + 10, i + 1))
        for i, rid in enumerate(ids)
    ]


def _ready(filters, metadata="file-a"):
    pipeline = RecordFilterPipeline(filters)
    pipeline.initialize(FileContext(metadata=metadata))
    return pipeline


class Passthrough(AbstractRecordFilter):
    def apply(self, context, record, has_next):
        return [dict(record)]


class Spy(AbstractRecordFilter):
    """Records what it sees and passes records through."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.seen = []

    def apply(self, context, record, has_next):
        self.seen.append((dict(record), context, has_next))
        return [dict(record)]


class GroupEvery2(AbstractRecordFilter):
    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.buffer = []

    def apply(self, context, record, has_next):
        self.buffer.append(record["id"])
        if len(self.buffer) == 2 or not has_next:
            ids, self.buffer = self.buffer, []
            return [{"ids": ids}]
        return []

    def flush(self):
        if not self.buffer:
            return []
        ids, self.buffer = self.buffer, []
        return [FileRecord(value={"ids": ids})]

    def clear(self):
        self.buffer = []


class BufferUntilFailure(AbstractRecordFilter):
    """Buffers every record; raises on the ``fail_on``-th call."""

    def __init__(self, fail_on, **kwargs):
        super().__init__(**kwargs)
        self.fail_on = fail_on
        self.calls = 0
        self.buffer = []
        self.cleared = 0

    def apply(self, context, record, has_next):
        self.calls += 1
        if self.calls == self.fail_on:
            raise FilterException(f"call {self.calls} failed")
        self.buffer.append(FileRecord(value=dict(record), offset=context.offset))
        return []

    def flush(self):
        drained, self.buffer = self.buffer, []
        return drained

    def clear(self):
        self.cleared += 1
        self.buffer = []


def test_iter_with_lookahead_flags_last_item():
    assert list(iter_with_lookahead("abc")) == [("a", True), ("b", True), ("c", False)]
    assert list(iter_with_lookahead([])) == []


def test_empty_chain_is_identity():
    pipeline = _ready([])
    records = _records("A", "B", "C")

    out = pipeline.process(records, False)

    assert out == records
    assert [r.offset for r in out] == [r.offset for r in records]


def test_empty_chain_apply_wraps_record_with_context_offset():
    pipeline = RecordFilterPipeline([])
    offset = LineRecordOffset(0, 5, 1)

    out = pipeline.apply(FilterContext(offset=offset), {"id": "A"}, False)

    assert out == [FileRecord(value={"id": "A"}, offset=offset)]


def test_process_before_initialize_raises():
    pipeline = RecordFilterPipeline([Passthrough()])

    with pytest.raises(PipelineStateError):
        pipeline.process(_records("A"), False)


def test_stateless_fan_out_preserves_order():
    split = FuncRecordFilter(lambda ctx, rec: [{"id": rec["id"] + "1"}, {"id": rec["id"] + "2"}])
    suffix = FuncRecordFilter(lambda ctx, rec: {"id": rec["id"] + "!"})
    pipeline = _ready([split, suffix])

    out = pipeline.process(_records("A", "B"), False)

    assert [r.value["id"] for r in out] == ["A1!", "A2!", "B1!", "B2!"]


def test_output_records_keep_triggering_offset():
    pipeline = _ready([Passthrough(), Passthrough()])
    records = _records("A", "B")

    out = pipeline.process(records, False)

    assert [r.offset for r in out] == [r.offset for r in records]


def test_lookahead_per_record_in_last_batch():
    spy = Spy()
    pipeline = _ready([spy])

    pipeline.process(_records("A", "B", "C"), False)

    assert [has_next for _, _, has_next in spy.seen] == [True, True, False]


def test_lookahead_stays_true_when_more_batches_follow():
    spy = Spy()
    pipeline = _ready([spy])

    pipeline.process(_records("A", "B", "C"), True)

    assert [has_next for _, _, has_next in spy.seen] == [True, True, True]


def test_lookahead_is_not_affected_by_fan_out():
    split = FuncRecordFilter(lambda ctx, rec: [dict(rec), dict(rec)])
    spy = Spy()
    pipeline = _ready([split, spy])

    pipeline.process(_records("A"), False)

    assert [has_next for _, _, has_next in spy.seen] == [False, False]


def test_group_filter_emits_pairs_and_remainder():
    pipeline = _ready([Passthrough(), GroupEvery2()])

    out = pipeline.process(_records("A", "B", "C"), False)

    assert [r.value for r in out] == [{"ids": ["A", "B"]}, {"ids": ["C"]}]


def test_rejecting_stage_passes_record_to_next_stage():
    skipped = Spy(condition=lambda ctx, rec: rec["id"] != "B")
    tail = Spy()
    pipeline = _ready([skipped, tail])

    out = pipeline.process(_records("A", "B"), False)

    assert [rec["id"] for rec, _, _ in skipped.seen] == ["A"]
    assert [rec["id"] for rec, _, _ in tail.seen] == ["A", "B"]
    assert [r.value["id"] for r in out] == ["A", "B"]


def test_end_of_stream_drains_last_filter_even_if_it_rejects():
    buffering = BufferUntilFailure(fail_on=-1, condition=lambda ctx, rec: "x" in rec)
    pipeline = _ready([buffering])
    records = [
        FileRecord(value={"id": 1, "x": True}, offset=LineRecordOffset(0, 5, 1)),
        FileRecord(value={"id": 2, "x": True}, offset=LineRecordOffset(5, 10, 2)),
        FileRecord(value={"id": 3}, offset=LineRecordOffset(10, 15, 3)),
    ]

    out = pipeline.process(records, False)

    assert [r.value["id"] for r in out] == [1, 2, 3]
    assert [r.offset.rows for r in out] == [1, 2, 3]
    assert buffering.buffer == []


def test_rejecting_last_filter_keeps_buffer_while_input_continues():
    buffering = BufferUntilFailure(fail_on=-1, condition=lambda ctx, rec: "x" in rec)
    pipeline = _ready([buffering])
    records = [FileRecord(value={"id": 1, "x": True}), FileRecord(value={"id": 2})]

    out = pipeline.process(records, True)

    assert [r.value["id"] for r in out] == [2]
    assert len(buffering.buffer) == 1


def test_failure_drains_buffer_before_ignored_record():
    buffering = BufferUntilFailure(fail_on=3, ignore_failure=True)
    pipeline = _ready([buffering])

    out = pipeline.process(_records("A", "B", "C", "D"), True)

    assert [r.value["id"] for r in out] == ["A", "B", "C"]
    assert [r.offset.rows for r in out] == [1, 2, 3]
    # D was buffered after the failure, not lost or duplicated
    assert [r.value["id"] for r in buffering.buffer] == ["D"]


def test_drained_records_flow_through_downstream_stages():
    buffering = BufferUntilFailure(fail_on=3, ignore_failure=True)
    spy = Spy()
    pipeline = _ready([buffering, spy])

    out = pipeline.process(_records("A", "B", "C"), True)

    assert [r.value["id"] for r in out] == ["A", "B", "C"]
    seen_ids = [rec["id"] for rec, _, _ in spy.seen]
    assert seen_ids == ["A", "B", "C"]
    # drained records keep their own offsets and lookahead within the drain
    assert [ctx.offset.rows for _, ctx, _ in spy.seen[:2]] == [1, 2]
    assert [has_next for _, _, has_next in spy.seen[:2]] == [True, False]
    assert all(ctx.metadata == "file-a" for _, ctx, _ in spy.seen)


def test_failure_drains_buffer_before_error_pipeline_output():
    def describe(ctx, rec):
        return {**rec, "error": ctx.error.message, "filter": ctx.error.filter}

    errors = RecordFilterPipeline([FuncRecordFilter(describe)])
    buffering = BufferUntilFailure(fail_on=2, label="buffer", on_failure=errors)
    pipeline = _ready([buffering])

    out = pipeline.process(_records("A", "B"), True)

    assert [r.value for r in out] == [
        {"id": "A"},
        {"id": "B", "error": "call 2 failed", "filter": "buffer"},
    ]


def test_ignored_failure_forwards_original_record_once():
    failing = FuncRecordFilter(_raise, label="failing", ignore_failure=True)
    tail = Spy()
    pipeline = _ready([failing, tail])
    records = _records("A")

    out = pipeline.process(records, False)

    assert out == [FileRecord(value={"id": "A"}, offset=records[0].offset)]
    assert [rec for rec, _, _ in tail.seen] == [{"id": "A"}]


def test_ignored_failure_on_last_stage_emits_original_record():
    pipeline = _ready([FuncRecordFilter(_raise, ignore_failure=True)])

    out = pipeline.process(_records("A", "B"), False)

    assert [r.value for r in out] == [{"id": "A"}, {"id": "B"}]
    assert pipeline.stats.ignored == 2


def _raise(ctx, rec):
    raise FilterException("boom")


def test_error_pipeline_receives_error_context():
    def fail_on_bad(ctx, rec):
        if rec["msg"] == "bad":
            raise FilterException("bad record")
        return rec

    def describe(ctx, rec):
        return {**rec, "error": ctx.error.message, "filter": ctx.error.filter}

    error_filter = Spy()
    errors = RecordFilterPipeline([FuncRecordFilter(describe), error_filter])
    pipeline = _ready([FuncRecordFilter(fail_on_bad, label="failing", on_failure=errors)])
    records = [FileRecord(value={"msg": "ok"}), FileRecord(value={"msg": "bad"})]

    out = pipeline.process(records, False)

    assert [r.value for r in out] == [
        {"msg": "ok"},
        {"msg": "bad", "error": "bad record", "filter": "failing"},
    ]
    assert len(error_filter.seen) == 1
    assert pipeline.stats.routed == 1


def test_error_context_does_not_leak_into_parent_context():
    contexts = []

    def fail(ctx, rec):
        contexts.append(ctx)
        raise FilterException("nope")

    errors = RecordFilterPipeline([])
    pipeline = _ready([FuncRecordFilter(fail, on_failure=errors)])

    pipeline.process(_records("A"), False)

    assert contexts[0].error is None


def test_unrecoverable_failure_propagates_and_logs(caplog):
    buffering = BufferUntilFailure(fail_on=2, label="buffering")
    pipeline = _ready([buffering])

    with caplog.at_level(logging.ERROR, logger="filepulse"):
        with pytest.raises(FilterException, match="call 2 failed"):
            pipeline.process(_records("A", "B", "C"), False)

    assert "buffering" in caplog.text
    assert "'id': 'B'" in caplog.text
    # the buffer was drained before re-raising
    assert buffering.buffer == []


def test_unrecoverable_failure_is_logged_even_if_drain_fails(caplog):
    buffering = BufferUntilFailure(fail_on=2, label="buffering")
    pipeline = _ready([buffering, FuncRecordFilter(_raise, label="downstream")])

    with caplog.at_level(logging.ERROR, logger="filepulse"):
        with pytest.raises(FilterException):
            pipeline.process(_records("A", "B"), False)

    messages = [r.getMessage() for r in caplog.records]
    assert any("'buffering'" in m and "'id': 'B'" in m for m in messages)
    assert any("'downstream'" in m and "'id': 'A'" in m for m in messages)


def test_unrecoverable_failure_aborts_rest_of_batch():
    spy = Spy()
    pipeline = _ready([FuncRecordFilter(_raise), spy])

    with pytest.raises(FilterException):
        pipeline.process(_records("A", "B"), False)

    assert spy.seen == []


def test_initialize_clears_filters_and_error_pipelines():
    inner = BufferUntilFailure(fail_on=-1)
    errors = RecordFilterPipeline([inner])
    outer = BufferUntilFailure(fail_on=-1, on_failure=errors)
    pipeline = RecordFilterPipeline([outer])

    pipeline.initialize(FileContext(metadata="a"))

    assert outer.cleared == 1
    assert inner.cleared == 1


def test_buffered_state_does_not_cross_source_objects():
    group = GroupEvery2()
    spy = Spy()
    pipeline = RecordFilterPipeline([group, spy])

    pipeline.initialize(FileContext(metadata="file-a"))
    first = pipeline.process(_records("A"), True)
    pipeline.initialize(FileContext(metadata="file-b"))
    second = pipeline.process(_records("X", "Y"), False)

    assert first == []
    assert [r.value for r in second] == [{"ids": ["X", "Y"]}]
    assert [ctx.metadata for _, ctx, _ in spy.seen] == ["file-b"]


def test_destination_hints_flow_to_outputs_and_downstream():
    def route(ctx, rec):
        ctx.topic = "events"
        ctx.partition = 3
        ctx.key = rec["id"]
        ctx.headers["source"] = "test"
        return rec

    spy = Spy()
    pipeline = _ready([FuncRecordFilter(route), spy])

    out = pipeline.process(_records("A"), False)

    _, downstream_ctx, _ = spy.seen[0]
    assert downstream_ctx.topic == "events"
    assert downstream_ctx.headers == {"source": "test"}
    assert out[0].topic == "events"
    assert out[0].partition == 3
    assert out[0].key == "A"
    assert out[0].headers == {"source": "test"}


def test_rejected_record_keeps_upstream_hints():
    def route(ctx, rec):
        ctx.topic = "events"
        return rec

    skipped = Spy(condition=lambda ctx, rec: False)
    pipeline = _ready([FuncRecordFilter(route), skipped])

    out = pipeline.process(_records("A"), False)

    assert skipped.seen == []
    assert [(r.value, r.topic) for r in out] == [({"id": "A"}, "events")]


def test_downstream_context_is_a_copy():
    def tag_headers(ctx, rec):
        ctx.headers["stage"] = "second"
        return rec

    first_contexts = []

    def capture(ctx, rec):
        first_contexts.append(ctx)
        return rec

    pipeline = _ready([FuncRecordFilter(capture), FuncRecordFilter(tag_headers)])

    pipeline.process(_records("A"), False)

    assert first_contexts[0].headers == {}


def test_stats_count_records_and_recoveries():
    buffering = BufferUntilFailure(fail_on=2, ignore_failure=True)
    pipeline = _ready([buffering])

    pipeline.process(_records("A", "B"), True)

    assert pipeline.stats.as_dict() == {
        "records_in": 2,
        "records_out": 2,
        "flushed": 1,
        "failures": 1,
        "routed": 0,
        "ignored": 1,
    }
