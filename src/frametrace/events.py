"""Execution events pushed into the frame writer by the instrumentation layer.

Events are immutable and consumed exactly once. Operand events (register,
memory and flag accesses) belong to the most recent ``OperationStart``;
module loads and system calls stand alone.

Events can also be replayed from JSON lines, one object per line with an
``"event"`` discriminator::

    {"event": "operation", "address": 4194304, "tid": 1, "bytes": "90"}
    {"event": "mem_read", "address": 4096, "value": "01"}
    {"event": "flags_write", "value": "4602", "effects": {"ZF": "w"}}
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator, Union

from frametrace.flags import Flag, x86_eflags


@dataclass(frozen=True)
class Event:
    """Base class for all execution events."""


@dataclass(frozen=True)
class OperationStart(Event):
    """Start of an instruction; opens a new instruction frame."""

    address: int
    thread_id: int
    raw_bytes: bytes


@dataclass(frozen=True)
class RegisterRead(Event):
    name: str
    value: bytes
    width: int = 0


@dataclass(frozen=True)
class RegisterWrite(Event):
    name: str
    value: bytes
    width: int = 0


@dataclass(frozen=True)
class MemoryRead(Event):
    address: int
    value: bytes


@dataclass(frozen=True)
class MemoryWrite(Event):
    address: int
    value: bytes


@dataclass(frozen=True)
class FlagsRead(Event):
    """Read of the composite flags register.

    Attributes:
        value: Raw register bytes
        flags: Flag table for this instruction, in emission order
    """

    value: bytes
    flags: tuple[Flag, ...]


@dataclass(frozen=True)
class FlagsWrite(Event):
    value: bytes
    flags: tuple[Flag, ...]


@dataclass(frozen=True)
class ModuleLoad(Event):
    name: str
    low: int
    high: int


@dataclass(frozen=True)
class SystemCall(Event):
    address: int
    thread_id: int
    number: int
    args: tuple[int, ...] = ()


@dataclass(frozen=True)
class Unsupported(Event):
    """An instrumentation category the frames protocol does not record."""

    kind: str
    detail: str = ""


OperandEvent = Union[RegisterRead, RegisterWrite, MemoryRead, MemoryWrite, FlagsRead, FlagsWrite]

OPERAND_EVENTS: tuple[type, ...] = (
    RegisterRead,
    RegisterWrite,
    MemoryRead,
    MemoryWrite,
    FlagsRead,
    FlagsWrite,
)


def _int(value: Any) -> int:
    """Accept ints and ``"0x..."`` strings."""
    if isinstance(value, str):
        return int(value, 0)
    return int(value)


def _bytes(value: Any) -> bytes:
    if isinstance(value, list):
        return bytes(value)
    return bytes.fromhex(value)


def _flags(data: dict[str, Any]) -> tuple[Flag, ...]:
    return x86_eflags(data.get("effects", {}))


_DECODERS = {
    "operation": lambda d: OperationStart(_int(d["address"]), _int(d["tid"]), _bytes(d["bytes"])),
    "reg_read": lambda d: RegisterRead(d["name"], _bytes(d["value"]), _int(d.get("width", 0))),
    "reg_write": lambda d: RegisterWrite(d["name"], _bytes(d["value"]), _int(d.get("width", 0))),
    "mem_read": lambda d: MemoryRead(_int(d["address"]), _bytes(d["value"])),
    "mem_write": lambda d: MemoryWrite(_int(d["address"]), _bytes(d["value"])),
    "flags_read": lambda d: FlagsRead(_bytes(d["value"]), _flags(d)),
    "flags_write": lambda d: FlagsWrite(_bytes(d["value"]), _flags(d)),
    "modload": lambda d: ModuleLoad(d["name"], _int(d["low"]), _int(d["high"])),
    "syscall": lambda d: SystemCall(
        _int(d["address"]),
        _int(d["tid"]),
        _int(d["number"]),
        tuple(_int(a) for a in d.get("args", [])),
    ),
}


def event_from_dict(data: dict[str, Any]) -> Event:
    """Decode one event record.

    Records with an unknown ``"event"`` value decode to ``Unsupported`` so
    that replay keeps going; missing or malformed fields raise ``ValueError``.

    Args:
        data: Decoded JSON object

    Returns:
        The matching Event
    """
    kind = data.get("event")
    if not isinstance(kind, str):
        raise ValueError(f"Event record has no 'event' field: {data!r}")

    decoder = _DECODERS.get(kind)
    if decoder is None:
        return Unsupported(kind=kind, detail=json.dumps(data, sort_keys=True))

    try:
        return decoder(data)
    except (KeyError, TypeError, ValueError) as e:
        raise ValueError(f"Malformed {kind} event {data!r}: {e}") from e


def read_events(path: Union[str, Path]) -> Iterator[Event]:
    """Read events from a JSON-lines file, skipping blank lines.

    Args:
        path: Path to the event log

    Yields:
        Events in file order
    """
    with open(path) as f:
        for lineno, line in enumerate(f, 1):
            line = line.strip()
            if not line:
                continue
            try:
                data = json.loads(line)
            except json.JSONDecodeError as e:
                raise ValueError(f"{path}:{lineno}: invalid JSON: {e}") from e
            yield event_from_dict(data)
