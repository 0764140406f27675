"""Process architecture constants.

Every trace carries one ``(architecture, machine)`` pair. Only the IA-32
family is supported: 32-bit (IA-32) and 64-bit (IA-32e) machines.
"""

from __future__ import annotations

import platform
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from frametrace.errors import ConfigurationError


class Architecture(str, Enum):
    """Frame architecture identifier."""

    I386 = "i386"


class Machine(str, Enum):
    """Frame machine identifier within an architecture."""

    I386_I386 = "i386:i386"
    X86_64 = "i386:x86-64"

    @property
    def architecture(self) -> Architecture:
        return _MACHINE_ARCHITECTURE[self]

    @property
    def word_size(self) -> int:
        """Return the native word size in bits."""
        return 64 if self is Machine.X86_64 else 32


_MACHINE_ARCHITECTURE = {
    Machine.I386_I386: Architecture.I386,
    Machine.X86_64: Architecture.I386,
}

# platform.machine() spellings
_HOST_MACHINES = {
    "i386": Machine.I386_I386,
    "i486": Machine.I386_I386,
    "i586": Machine.I386_I386,
    "i686": Machine.I386_I386,
    "x86": Machine.I386_I386,
    "x86_64": Machine.X86_64,
    "amd64": Machine.X86_64,
}


@dataclass(frozen=True)
class ProcessArch:
    """The ``(architecture, machine)`` pair stamped on a trace."""

    architecture: Architecture
    machine: Machine

    def __post_init__(self):
        if self.machine.architecture is not self.architecture:
            raise ConfigurationError(
                f"machine {self.machine.value} does not belong to "
                f"architecture {self.architecture.value}"
            )

    @classmethod
    def for_machine(cls, machine: Union[str, Machine]) -> "ProcessArch":
        """Build the pair from a machine identifier or a host machine name.

        Args:
            machine: ``Machine`` value (``"i386:x86-64"``) or host spelling
                (``"x86_64"``, ``"i686"``, ...)

        Returns:
            ProcessArch for the machine
        """
        if isinstance(machine, Machine):
            resolved: Optional[Machine] = machine
        else:
            try:
                resolved = Machine(machine)
            except ValueError:
                resolved = _HOST_MACHINES.get(machine.lower())

        if resolved is None:
            supported = ", ".join(m.value for m in Machine)
            raise ConfigurationError(f"Unsupported machine: {machine}. Supported: {supported}")

        return cls(architecture=resolved.architecture, machine=resolved)

    @classmethod
    def detect(cls) -> "ProcessArch":
        """Select the pair matching the host interpreter."""
        return cls.for_machine(platform.machine())


def supported_arches() -> list[ProcessArch]:
    """Return every supported architecture/machine pair."""
    return [ProcessArch.for_machine(machine) for machine in Machine]
