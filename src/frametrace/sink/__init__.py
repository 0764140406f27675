"""Frame stores.

The Parquet sink is imported lazily so that in-memory use does not
require pyarrow to be importable.
"""

from frametrace.sink.base import TraceSink, MemoryTraceSink, SinkFactory

__all__ = [
    "TraceSink",
    "MemoryTraceSink",
    "SinkFactory",
    "ParquetTraceSink",
    "TraceFile",
    "read_trace",
]


def __getattr__(name):
    """Lazy import for the Parquet sink."""
    if name in ("ParquetTraceSink", "TraceFile", "read_trace"):
        from frametrace.sink import parquet

        return getattr(parquet, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
