# __init__.py
# SPDX-License-Identifier: MIT
"""
Top-level package exports for :mod:`filepulse`.

filepulse runs the records extracted from source objects (usually files)
through an ordered chain of filters. Filters may fan records out, drop them,
or buffer them across calls; the pipeline decides when buffered records must
be released and how a failing filter is recovered from.

Public surface
--------------
The symbols in :data:`PRIMARY_API` are the stable surface. Typical use:

- Implement :class:`RecordFilter` (or subclass :class:`AbstractRecordFilter`).
- Build a :class:`RecordFilterPipeline` directly, or from configuration via
  :func:`build_filter_pipeline`.
- Call :meth:`RecordFilterPipeline.initialize` once per source object, then
  :meth:`RecordFilterPipeline.process` for each batch.

Examples:
    Direct use::

        >>> from filepulse import FileContext, FileRecord, FuncRecordFilter, RecordFilterPipeline
        >>> upper = FuncRecordFilter(lambda ctx, rec: {"message": rec["message"].upper()})
        >>> pipeline = RecordFilterPipeline([upper])
        >>> pipeline.initialize(FileContext(metadata="inline"))
        >>> [r.value for r in pipeline.process([FileRecord({"message": "hi"})], False)]
        [{'message': 'HI'}]

    Config-driven run::

        >>> from filepulse import load_config_from_path, run_files, JSONLSink
        >>> cfg = load_config_from_path("pipeline.toml")
        >>> stats = run_files(cfg, ["data.log"], JSONLSink("out.jsonl"))
"""

from __future__ import annotations

try:
    from importlib.metadata import version as _pkg_version

    __version__ = _pkg_version("filepulse")
except Exception:  # PackageNotFoundError when running from a source tree
    __version__ = "0.0.0+unknown"


from .core.builder import build_filter, build_filter_pipeline
from .core.config import FilePulseConfig, FilterSpec, load_config_from_path
from .core.context import FilterContext, FilterContextBuilder, FilterError
from .core.filters import AbstractRecordFilter, FilterException, FuncRecordFilter
from .core.interfaces import FileContext, FileInputReader, FileObjectMeta, RecordFilter, RecordSink
from .core.log import configure_logging, get_logger, temp_level
from .core.offsets import DefaultOffsetPolicy
from .core.pipeline import PipelineStateError, PipelineStats, RecordFilterPipeline
from .core.records import (
    EMPTY_OFFSET,
    BytesRecordOffset,
    FileRecord,
    FileRecordOffset,
    LineRecordOffset,
)
from .core.registries import FilterRegistry, ReaderRegistry, default_registries
from .core.runner import RunStats, iter_file_records, run_files
from .filters.standard import DropFilter, ExcludeFilter, FailFilter, GroupRowFilter
from .sinks.sinks import JSONLSink, ListSink
from .sources.readers import (
    BytesArrayInputReader,
    FileInputMetadataReader,
    RowFileInputReader,
    XMLFileInputReader,
)

PRIMARY_API = [
    "__version__",
    "RecordFilter",
    "AbstractRecordFilter",
    "FuncRecordFilter",
    "FilterException",
    "FilterContext",
    "FilterContextBuilder",
    "FilterError",
    "FileContext",
    "FileObjectMeta",
    "FileRecord",
    "FileRecordOffset",
    "BytesRecordOffset",
    "LineRecordOffset",
    "EMPTY_OFFSET",
    "RecordFilterPipeline",
    "PipelineStateError",
    "PipelineStats",
    "FilePulseConfig",
    "FilterSpec",
    "load_config_from_path",
    "build_filter",
    "build_filter_pipeline",
    "FilterRegistry",
    "ReaderRegistry",
    "default_registries",
    "DefaultOffsetPolicy",
    "iter_file_records",
    "run_files",
    "RunStats",
    "configure_logging",
    "get_logger",
]

__all__ = list(PRIMARY_API)
