"""Condition-flag decomposition.

A flags access event carries the raw bytes of the composite status
register plus the table of flags the instruction touched. Decomposition
turns it into one single-byte register operand per flag, filtered by
whether the instruction reads or writes that flag.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntFlag
from functools import partial
from typing import TYPE_CHECKING, Callable, Mapping, NamedTuple, Sequence, Union

from frametrace.frames import Usage

if TYPE_CHECKING:
    from frametrace.events import FlagsRead, FlagsWrite


class FlagEffect(IntFlag):
    """How an instruction affects a flag."""

    NONE = 0
    READ = 1
    WRITE = 2
    READ_WRITE = 3

    @classmethod
    def parse(cls, text: str) -> "FlagEffect":
        """Parse ``""``, ``"r"``, ``"w"`` or ``"rw"``."""
        effect = cls.NONE
        for ch in text.lower():
            if ch == "r":
                effect |= cls.READ
            elif ch == "w":
                effect |= cls.WRITE
            else:
                raise ValueError(f"Invalid flag effect: {text!r}")
        return effect


def _extract_bit(offset: int, raw: bytes) -> int:
    return (int.from_bytes(raw, "little") >> offset) & 1


def bit_extractor(offset: int) -> Callable[[bytes], int]:
    """Return an extractor for bit ``offset`` of a little-endian register."""
    return partial(_extract_bit, offset)


@dataclass(frozen=True)
class Flag:
    """One component of a composite flags register.

    Attributes:
        name: Flag name (e.g. ``"ZF"``)
        width: Declared width in bits, used as the operand bit length
        effect: Whether the current instruction reads and/or writes it
        extractor: Function from raw register bytes to the flag value
    """

    name: str
    width: int
    effect: FlagEffect
    extractor: Callable[[bytes], int]

    def value(self, raw: bytes) -> int:
        return self.extractor(raw)


class FlagValue(NamedTuple):
    """A decomposed flag: name, value wrapped in one byte, declared width."""

    name: str
    value: bytes
    width: int


_REQUIRED_EFFECT = {
    Usage.READ: FlagEffect.READ,
    Usage.WRITE: FlagEffect.WRITE,
}


def decompose_flags(flags: Sequence[Flag], raw: bytes, usage: Usage) -> list[FlagValue]:
    """Decompose a raw flags register into per-flag values.

    Args:
        flags: Flag table, in emission order
        raw: Raw bytes of the flags register
        usage: Direction to keep; flags without that effect are skipped

    Returns:
        One FlagValue per matching flag, in table order
    """
    required = _REQUIRED_EFFECT[usage]
    return [
        FlagValue(flag.name, bytes([flag.value(raw) & 0xFF]), flag.width)
        for flag in flags
        if flag.effect & required
    ]


def decompose(event: Union["FlagsRead", "FlagsWrite"], usage: Usage) -> list[FlagValue]:
    """Decompose a flags access event in the given direction."""
    return decompose_flags(event.flags, event.value, usage)


# IA-32 EFLAGS status and control bits (name, bit offset)
X86_EFLAGS_LAYOUT: tuple[tuple[str, int], ...] = (
    ("CF", 0),
    ("PF", 2),
    ("AF", 4),
    ("ZF", 6),
    ("SF", 7),
    ("TF", 8),
    ("IF", 9),
    ("DF", 10),
    ("OF", 11),
)


def x86_eflags(effects: Mapping[str, Union[FlagEffect, str]]) -> tuple[Flag, ...]:
    """Build the EFLAGS table for one instruction.

    Args:
        effects: Flag name to effect (``FlagEffect`` or ``"r"``/``"w"``/``"rw"``).
            Flags not named get ``FlagEffect.NONE``.

    Returns:
        Flag table in EFLAGS bit order
    """
    known = {name for name, _ in X86_EFLAGS_LAYOUT}
    unknown = set(effects) - known
    if unknown:
        raise ValueError(f"Unknown EFLAGS bits: {sorted(unknown)}")

    table = []
    for name, offset in X86_EFLAGS_LAYOUT:
        effect = effects.get(name, FlagEffect.NONE)
        if isinstance(effect, str):
            effect = FlagEffect.parse(effect)
        table.append(Flag(name=name, width=1, effect=effect, extractor=bit_extractor(offset)))
    return tuple(table)
