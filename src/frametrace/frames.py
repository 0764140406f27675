"""Trace frame data structures and the operand codec.

A frame is one finalized unit of trace output. Instruction frames carry
the operands an instruction touched, split into the pre-state (values
read) and the post-state (values written). Module-load and system-call
frames are built from a single event.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union


class Usage(str, Enum):
    """How an instruction touched an operand."""

    READ = "read"
    WRITE = "write"


class Taint(str, Enum):
    """Taint annotation attached to every operand."""

    UNTRACKED = "no_taint"


@dataclass(frozen=True)
class OperandDescriptor:
    """A single register or memory location touched by an instruction.

    Exactly one of ``address`` (memory operand) or ``register`` (register
    operand) is set.
    """

    bit_length: int
    is_read: bool
    is_written: bool
    value: bytes
    address: Optional[int] = None
    register: Optional[str] = None
    is_index: bool = False
    is_base: bool = False
    taint: Taint = Taint.UNTRACKED

    def __post_init__(self):
        if (self.address is None) == (self.register is None):
            raise ValueError("operand must name exactly one of address or register")

    @property
    def is_memory(self) -> bool:
        return self.address is not None

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dictionary."""
        d: dict[str, Any] = {
            "bit_length": self.bit_length,
            "usage": {
                "read": self.is_read,
                "written": self.is_written,
                "index": self.is_index,
                "base": self.is_base,
            },
            "value": self.value.hex(),
            "taint": self.taint.value,
        }
        if self.is_memory:
            d["mem_operand"] = {"address": self.address}
        else:
            d["reg_operand"] = {"name": self.register}
        return d


def encode_operand(
    usage: Usage,
    value: bytes,
    width: int = 0,
    *,
    address: Optional[int] = None,
    register: Optional[str] = None,
) -> OperandDescriptor:
    """Encode raw operand bytes into an operand descriptor.

    Args:
        usage: Whether the operand was read or written
        value: Raw value bytes, stored verbatim
        width: Declared bit width; 0 means ``8 * len(value)``
        address: Accessed address for memory operands
        register: Register name for register operands

    Returns:
        OperandDescriptor with exactly one of read/written set
    """
    return OperandDescriptor(
        bit_length=width if width else 8 * len(value),
        is_read=usage is Usage.READ,
        is_written=usage is Usage.WRITE,
        value=bytes(value),
        address=address,
        register=register,
    )


@dataclass(frozen=True)
class InstructionFrame:
    """A finalized instruction with its pre- and post-state operands."""

    address: int
    thread_id: int
    raw_bytes: bytes
    pre_operands: tuple[OperandDescriptor, ...] = ()
    post_operands: tuple[OperandDescriptor, ...] = ()

    kind = "std_frame"

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "thread_id": self.thread_id,
            "rawbytes": self.raw_bytes.hex(),
            "operand_pre_list": [op.to_dict() for op in self.pre_operands],
            "operand_post_list": [op.to_dict() for op in self.post_operands],
        }


@dataclass(frozen=True)
class ModuleLoadFrame:
    """A module mapped into the traced process."""

    module_name: str
    low_address: int
    high_address: int

    kind = "modload_frame"

    def to_dict(self) -> dict[str, Any]:
        return {
            "module_name": self.module_name,
            "low_address": self.low_address,
            "high_address": self.high_address,
        }


@dataclass(frozen=True)
class SyscallFrame:
    """A system call with its raw argument words in call-site order."""

    address: int
    thread_id: int
    number: int
    arguments: tuple[int, ...] = ()

    kind = "syscall_frame"

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "thread_id": self.thread_id,
            "number": self.number,
            "argument_list": list(self.arguments),
        }


Frame = Union[InstructionFrame, ModuleLoadFrame, SyscallFrame]


@dataclass
class PendingFrame:
    """An instruction frame still receiving operands.

    Owned by the accumulator until ``freeze()`` hands out the immutable
    ``InstructionFrame``.
    """

    address: int
    thread_id: int
    raw_bytes: bytes
    pre_operands: list[OperandDescriptor] = field(default_factory=list)
    post_operands: list[OperandDescriptor] = field(default_factory=list)

    def add(self, operand: OperandDescriptor) -> None:
        """Append an operand to the pre- or post-state list by its usage."""
        if operand.is_read:
            self.pre_operands.append(operand)
        else:
            self.post_operands.append(operand)

    def freeze(self) -> InstructionFrame:
        return InstructionFrame(
            address=self.address,
            thread_id=self.thread_id,
            raw_bytes=self.raw_bytes,
            pre_operands=tuple(self.pre_operands),
            post_operands=tuple(self.post_operands),
        )
