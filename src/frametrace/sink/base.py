"""Trace sink contract.

A sink is the durable, ordered store that receives finished frames. It is
opened once per session with the session metadata and the process
architecture, receives frames through ``append`` in order and is flushed
by ``close``, which must be idempotent.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Union

from frametrace.errors import SinkError
from frametrace.frames import Frame
from frametrace.metadata import SessionMetadata
from frametrace.utils.types import Architecture, Machine


class TraceSink(ABC):
    """Abstract base class for frame stores."""

    def __init__(self):
        self.frame_count = 0
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def append(self, frame: Frame) -> None:
        """Store a finished frame after all previously appended frames.

        Raises:
            SinkError: If the sink is closed or the store is unwritable
        """
        if self._closed:
            raise SinkError("append to closed trace sink", frame_index=self.frame_count)
        self._store(frame)
        self.frame_count += 1

    def close(self) -> None:
        """Flush buffered frames and release the store. Safe to call twice."""
        if self._closed:
            return
        self._closed = True
        self._finish()

    @abstractmethod
    def _store(self, frame: Frame) -> None:
        """Store one frame."""
        pass

    @abstractmethod
    def _finish(self) -> None:
        """Flush and release the underlying store."""
        pass


SinkFactory = Callable[[Union[str, Path], SessionMetadata, Architecture, Machine], TraceSink]


class MemoryTraceSink(TraceSink):
    """Keeps frames in memory; used for tests and in-process consumers."""

    def __init__(self, metadata: SessionMetadata, architecture: Architecture, machine: Machine):
        super().__init__()
        self.metadata = metadata
        self.architecture = architecture
        self.machine = machine
        self.frames: list[Frame] = []

    @classmethod
    def open(
        cls,
        path: Union[str, Path],
        metadata: SessionMetadata,
        architecture: Architecture,
        machine: Machine,
    ) -> "MemoryTraceSink":
        return cls(metadata, architecture, machine)

    def _store(self, frame: Frame) -> None:
        self.frames.append(frame)

    def _finish(self) -> None:
        pass
