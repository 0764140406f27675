"""Frames protocol writer.

Routes every execution event of a session to the right frame:

- ``OperationStart`` and operand events go through the FrameAccumulator
  and produce one instruction frame per instruction.
- ``ModuleLoad`` and ``SystemCall`` become frames immediately, without
  touching the open instruction frame.
- ``Unsupported`` events are logged and skipped.

Frames reach the sink in the order their defining events arrived, except
that an instruction frame is appended when its instruction ends.

Example:
    >>> config = TracerConfig()
    >>> with FrameWriter.open("trace.parquet", sys.argv, os.environ, config) as writer:
    ...     for event in events:
    ...         writer.write(event)
"""

from __future__ import annotations

from collections import Counter
from pathlib import Path
from typing import Callable, Iterable, Mapping, Optional, Sequence, Union

from frametrace.accumulator import FrameAccumulator
from frametrace.config import TracerConfig
from frametrace.errors import TeardownError, WriterClosedError
from frametrace.events import (
    OPERAND_EVENTS,
    Event,
    ModuleLoad,
    OperationStart,
    SystemCall,
    Unsupported,
)
from frametrace.frames import Frame, ModuleLoadFrame, SyscallFrame
from frametrace.metadata import SessionMetadata, SystemProbe, build_metadata
from frametrace.sink.base import SinkFactory, TraceSink
from frametrace.utils.logging import get_logger

logger = get_logger(__name__)


def parquet_sink_factory(config: TracerConfig) -> SinkFactory:
    """Return a factory opening ParquetTraceSink with the config's row group size."""

    def factory(path, metadata, architecture, machine):
        from frametrace.sink.parquet import ParquetTraceSink

        return ParquetTraceSink.open(
            path,
            metadata,
            architecture,
            machine,
            frames_per_row_group=config.frames_per_row_group,
        )

    return factory


class FrameWriter:
    """Writes one session of execution events as trace frames.

    Args:
        sink: Open trace sink; the writer closes it on ``close()``
        metadata: Session metadata the sink was opened with
    """

    def __init__(self, sink: TraceSink, metadata: Optional[SessionMetadata] = None):
        self.sink = sink
        self.metadata = metadata
        self.skipped: Counter[str] = Counter()
        self.teardown_error: Optional[TeardownError] = None
        self._closed = False
        self._accumulator = FrameAccumulator(self._append)

        self._handlers: dict[type, Callable[[Event], None]] = {
            OperationStart: self._accumulator.start,
            **{kind: self._accumulator.add for kind in OPERAND_EVENTS},
            ModuleLoad: self._on_module_load,
            SystemCall: self._on_syscall,
        }

    @classmethod
    def open(
        cls,
        path: Union[str, Path],
        argv: Sequence[str],
        env: Mapping[str, str],
        config: TracerConfig,
        sink_factory: Optional[SinkFactory] = None,
        system: Optional[SystemProbe] = None,
    ) -> "FrameWriter":
        """Start a session: build metadata, then open the sink.

        Args:
            path: Trace output path
            argv: Full tracer argument vector (``tracer args -- target args``)
            env: Process environment
            config: Tracer configuration
            sink_factory: Sink constructor, Parquet by default
            system: Filesystem and host probe for metadata

        Returns:
            FrameWriter ready to receive events

        Raises:
            StartupError: If metadata cannot be assembled; no sink is opened
            SinkError: If the sink cannot be opened
        """
        metadata = build_metadata(argv, env, config, system)
        factory = sink_factory or parquet_sink_factory(config)
        sink = factory(path, metadata, config.arch.architecture, config.arch.machine)
        logger.info(f"Started session for {metadata.target.path} -> {path}")
        return cls(sink, metadata)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def in_instruction(self) -> bool:
        """True while an instruction frame is open."""
        return self._accumulator.is_open

    def write(self, event: Event) -> None:
        """Process one event to completion.

        Raises:
            WriterClosedError: If the session is closed
            NoOpenFrameError: For an operand event outside an instruction
            SinkError: If the sink cannot store a frame
        """
        if self._closed:
            raise WriterClosedError(f"write of {event!r} after close")

        handler = self._handlers.get(type(event))
        if handler is None:
            self._on_unsupported(event)
        else:
            handler(event)

    def write_all(self, events: Iterable[Event]) -> int:
        """Write events in order and return how many were processed."""
        count = 0
        for event in events:
            self.write(event)
            count += 1
        return count

    def close(self) -> None:
        """Finalize the open instruction frame and close the sink.

        Failures are logged and kept on ``teardown_error``; they are never
        raised. Calling close twice is a no-op.
        """
        if self._closed:
            return
        self._closed = True

        try:
            self._accumulator.finish()
        except Exception as e:
            self._teardown_failed("finish failed", e)

        try:
            self.sink.close()
        except Exception as e:
            self._teardown_failed("close failed", e)

        logger.info(
            f"Session closed: {self.sink.frame_count} frames, "
            f"{sum(self.skipped.values())} events skipped"
        )

    def __enter__(self) -> "FrameWriter":
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def _append(self, frame: Frame) -> None:
        self.sink.append(frame)

    def _on_module_load(self, event: ModuleLoad) -> None:
        self._append(
            ModuleLoadFrame(
                module_name=event.name,
                low_address=event.low,
                high_address=event.high,
            )
        )

    def _on_syscall(self, event: SystemCall) -> None:
        self._append(
            SyscallFrame(
                address=event.address,
                thread_id=event.thread_id,
                number=event.number,
                arguments=tuple(event.args),
            )
        )

    def _on_unsupported(self, event: object) -> None:
        kind = event.kind if isinstance(event, Unsupported) else type(event).__name__
        self.skipped[kind] += 1
        logger.warning(f"skipped event {event!r} in frames protocol")

    def _teardown_failed(self, what: str, error: Exception) -> None:
        logger.error(f"{what} with: {error}")
        if self.teardown_error is None:
            self.teardown_error = TeardownError(f"{what} with: {error}", cause=error)
