"""
frametrace: instruction-level execution trace frame writer

Turns the event stream of an instrumentation-based tracer (instruction
starts, register/memory/flag accesses, module loads, system calls) into
an ordered sequence of trace frames with pre-/post-state operands, plus a
one-time session metadata record.

Key Components:
    - events: Execution event types and JSON-lines replay
    - frames: Frame types and the operand codec
    - flags: Condition-flag decomposition
    - accumulator: Instruction frame state machine
    - writer: Event dispatch and session lifecycle
    - metadata: Session metadata (target resolution, hash, file stats)
    - sink: Frame stores (in-memory, Parquet)

Example:
    >>> from frametrace import FrameWriter, TracerConfig
    >>> with FrameWriter.open("trace.parquet", sys.argv, os.environ, TracerConfig()) as w:
    ...     w.write(OperationStart(0x400000, 1, b"\\x90"))
"""

__version__ = "1.0.0"

from frametrace.errors import (
    FrameTraceError,
    ConfigurationError,
    StartupError,
    TargetNotFoundError,
    UsageError,
    NoOpenFrameError,
    WriterClosedError,
    SinkError,
    TeardownError,
)
from frametrace.events import (
    Event,
    OperationStart,
    RegisterRead,
    RegisterWrite,
    MemoryRead,
    MemoryWrite,
    FlagsRead,
    FlagsWrite,
    ModuleLoad,
    SystemCall,
    Unsupported,
    read_events,
)
from frametrace.frames import (
    Usage,
    OperandDescriptor,
    InstructionFrame,
    ModuleLoadFrame,
    SyscallFrame,
    encode_operand,
)
from frametrace.flags import Flag, FlagEffect, decompose, x86_eflags
from frametrace.accumulator import FrameAccumulator
from frametrace.config import TracerConfig
from frametrace.metadata import SessionMetadata, build_metadata, resolve_target, split_argv
from frametrace.sink import TraceSink, MemoryTraceSink
from frametrace.writer import FrameWriter


__all__ = [
    # Errors
    "FrameTraceError",
    "ConfigurationError",
    "StartupError",
    "TargetNotFoundError",
    "UsageError",
    "NoOpenFrameError",
    "WriterClosedError",
    "SinkError",
    "TeardownError",
    # Events
    "Event",
    "OperationStart",
    "RegisterRead",
    "RegisterWrite",
    "MemoryRead",
    "MemoryWrite",
    "FlagsRead",
    "FlagsWrite",
    "ModuleLoad",
    "SystemCall",
    "Unsupported",
    "read_events",
    # Frames
    "Usage",
    "OperandDescriptor",
    "InstructionFrame",
    "ModuleLoadFrame",
    "SyscallFrame",
    "encode_operand",
    # Flags
    "Flag",
    "FlagEffect",
    "decompose",
    "x86_eflags",
    # Session
    "FrameAccumulator",
    "FrameWriter",
    "TracerConfig",
    "SessionMetadata",
    "build_metadata",
    "resolve_target",
    "split_argv",
    # Sinks
    "TraceSink",
    "MemoryTraceSink",
    "ParquetTraceSink",
    "read_trace",
]


def __getattr__(name):
    """Lazy import for the Parquet sink (requires pyarrow)."""
    if name in ("ParquetTraceSink", "read_trace"):
        from frametrace.sink import parquet

        return getattr(parquet, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
