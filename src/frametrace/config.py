"""Tracer configuration.

Identity of the tracer written into session metadata, the process
architecture stamped on the trace, and storage settings.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Union

from frametrace.errors import ConfigurationError
from frametrace.utils.types import ProcessArch


@dataclass
class TracerConfig:
    """Configuration for a tracing session.

    Attributes:
        name: Tracer name recorded in the metadata
        version: Tracer version recorded in the metadata
        arch: Architecture/machine pair stamped on the trace
        frames_per_row_group: Frames buffered before the sink writes them out
        hash_algorithm: Digest used to fingerprint the target executable
    """

    name: str = "bpt"
    version: str = "1.0.0"
    arch: ProcessArch = field(default_factory=ProcessArch.detect)
    frames_per_row_group: int = 1024
    hash_algorithm: str = "md5"

    def __post_init__(self):
        """Validate configuration."""
        if self.frames_per_row_group <= 0:
            raise ConfigurationError(
                f"frames_per_row_group must be positive, got {self.frames_per_row_group}"
            )
        if self.hash_algorithm not in hashlib.algorithms_available:
            raise ConfigurationError(f"Unknown hash algorithm: {self.hash_algorithm}")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TracerConfig":
        """Build a config from a plain dictionary.

        The architecture is given by a ``machine`` key (``"i386:x86-64"``,
        ``"x86_64"``, ...); when absent the host machine is used.
        """
        data = dict(data)
        machine = data.pop("machine", None)
        unknown = set(data) - {"name", "version", "frames_per_row_group", "hash_algorithm"}
        if unknown:
            raise ConfigurationError(f"Unknown config keys: {sorted(unknown)}")

        if machine is not None:
            data["arch"] = ProcessArch.for_machine(str(machine))
        return cls(**data)

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "TracerConfig":
        """Load configuration from a YAML file with a top-level ``tracer`` mapping."""
        import yaml

        with open(path) as f:
            try:
                cfg = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Invalid config file {path}: {e}") from e

        section = cfg.get("tracer", {}) if isinstance(cfg, dict) else None
        if not isinstance(section, dict):
            raise ConfigurationError(f"{path}: 'tracer' must be a mapping")
        return cls.from_dict(section)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "machine": self.arch.machine.value,
            "frames_per_row_group": self.frames_per_row_group,
            "hash_algorithm": self.hash_algorithm,
        }
