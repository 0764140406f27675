"""Utility functions and common types for frametrace."""

from frametrace.utils.types import (
    Architecture,
    Machine,
    ProcessArch,
    supported_arches,
)
from frametrace.utils.logging import setup_logging, get_logger
from frametrace.utils.hashing import compute_file_hash

__all__ = [
    "Architecture",
    "Machine",
    "ProcessArch",
    "supported_arches",
    "setup_logging",
    "get_logger",
    "compute_file_hash",
]
