"""Parquet-backed trace sink.

Each frame becomes one row ``(index, kind, payload)`` with the payload
JSON-encoded. Session metadata, architecture and machine live in the
schema key/value metadata so a trace file is self-describing. Frames are
buffered and written one row group at a time.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Union

import pyarrow as pa
import pyarrow.parquet as pq

from frametrace.errors import SinkError
from frametrace.frames import Frame
from frametrace.metadata import SessionMetadata
from frametrace.sink.base import TraceSink
from frametrace.utils.logging import get_logger
from frametrace.utils.types import Architecture, Machine

logger = get_logger(__name__)

FRAME_SCHEMA = pa.schema(
    [
        ("index", pa.int64()),
        ("kind", pa.string()),
        ("payload", pa.string()),  # JSON-encoded
    ]
)

META_KEY = b"frametrace.metadata"
ARCH_KEY = b"frametrace.architecture"
MACHINE_KEY = b"frametrace.machine"


class ParquetTraceSink(TraceSink):
    """Writes frames to a Parquet file.

    Args:
        path: Output file path
        metadata: Session metadata stored in the file header
        architecture: Frame architecture
        machine: Frame machine
        frames_per_row_group: Frames buffered before a row group is written
    """

    def __init__(
        self,
        path: Union[str, Path],
        metadata: SessionMetadata,
        architecture: Architecture,
        machine: Machine,
        frames_per_row_group: int = 1024,
    ):
        super().__init__()
        self.path = Path(path)
        self.frames_per_row_group = frames_per_row_group
        self._buffer: list[tuple[int, str, str]] = []

        schema = FRAME_SCHEMA.with_metadata(
            {
                META_KEY: json.dumps(metadata.to_dict()).encode("utf-8"),
                ARCH_KEY: architecture.value.encode("utf-8"),
                MACHINE_KEY: machine.value.encode("utf-8"),
            }
        )
        try:
            self._writer = pq.ParquetWriter(str(self.path), schema)
        except (OSError, pa.ArrowException) as e:
            raise SinkError(f"cannot open trace file {self.path}: {e}") from e

        logger.info(f"Opened trace {self.path} ({architecture.value}, {machine.value})")

    @classmethod
    def open(
        cls,
        path: Union[str, Path],
        metadata: SessionMetadata,
        architecture: Architecture,
        machine: Machine,
        frames_per_row_group: int = 1024,
    ) -> "ParquetTraceSink":
        return cls(path, metadata, architecture, machine, frames_per_row_group)

    def _store(self, frame: Frame) -> None:
        self._buffer.append((self.frame_count, frame.kind, json.dumps(frame.to_dict())))
        if len(self._buffer) >= self.frames_per_row_group:
            self._flush()

    def _flush(self) -> None:
        if not self._buffer:
            return

        first_index = self._buffer[0][0]
        indices, kinds, payloads = zip(*self._buffer)
        table = pa.Table.from_arrays(
            [
                pa.array(list(indices), pa.int64()),
                pa.array(list(kinds)),
                pa.array(list(payloads)),
            ],
            schema=FRAME_SCHEMA,
        )
        count = len(self._buffer)
        # rows of a failed row group are dropped, never retried
        self._buffer.clear()
        try:
            self._writer.write_table(table)
        except (OSError, pa.ArrowException) as e:
            raise SinkError(f"cannot write frames to {self.path}: {e}", frame_index=first_index) from e

        logger.debug(f"Wrote {count} frames to {self.path}")

    def _finish(self) -> None:
        try:
            self._flush()
        finally:
            try:
                self._writer.close()
            except (OSError, pa.ArrowException) as e:
                raise SinkError(f"cannot close trace file {self.path}: {e}") from e
        logger.info(f"Closed trace {self.path}: {self.frame_count} frames")


@dataclass
class TraceFile:
    """Contents of a trace file read back for inspection."""

    metadata: dict[str, Any]
    architecture: str
    machine: str
    frames: list[dict[str, Any]]

    def frames_of_kind(self, kind: str) -> list[dict[str, Any]]:
        return [f["frame"] for f in self.frames if f["kind"] == kind]


def read_trace(path: Union[str, Path]) -> TraceFile:
    """Read a trace written by ParquetTraceSink.

    Args:
        path: Trace file path

    Returns:
        TraceFile with frames in append order, each ``{"index", "kind", "frame"}``
    """
    table = pq.read_table(str(path))
    schema_meta = table.schema.metadata or {}
    if META_KEY not in schema_meta:
        raise SinkError(f"{path} is not a frametrace file")

    rows = sorted(table.to_pylist(), key=lambda r: r["index"])
    return TraceFile(
        metadata=json.loads(schema_meta[META_KEY].decode("utf-8")),
        architecture=schema_meta[ARCH_KEY].decode("utf-8"),
        machine=schema_meta[MACHINE_KEY].decode("utf-8"),
        frames=[
            {"index": r["index"], "kind": r["kind"], "frame": json.loads(r["payload"])}
            for r in rows
        ],
    )
