"""Session metadata assembly.

The metadata record is built exactly once, before the first frame is
written, and cannot be amended afterwards. Every failure here is fatal
for session start.

The tracer's own argument vector is split at the first ``"--"``::

    bpt -o trace.parquet -- ./a.out input.txt

The target executable is resolved the way a shell resolves a command:
relative paths that exist are made absolute, bare names are searched on
``PATH`` (first match wins).
"""

from __future__ import annotations

import getpass
import os
import re
import socket
import time
from dataclasses import asdict, dataclass
from typing import Any, Mapping, NamedTuple, Optional, Sequence

from frametrace.config import TracerConfig
from frametrace.errors import StartupError, TargetNotFoundError
from frametrace.utils.hashing import compute_file_hash
from frametrace.utils.logging import get_logger

logger = get_logger(__name__)

ARGV_SEPARATOR = "--"


@dataclass(frozen=True)
class FileStats:
    """Size and timestamps of the target executable."""

    size: int
    atime: int
    mtime: int
    ctime: int


@dataclass(frozen=True)
class TracerInfo:
    name: str
    version: str
    args: tuple[str, ...]
    envp: tuple[str, ...]


@dataclass(frozen=True)
class TargetInfo:
    """Identity of the traced program.

    ``args[0]`` is the path as given on the command line; ``path`` is the
    resolved absolute path.
    """

    path: str
    args: tuple[str, ...]
    envp: tuple[str, ...]
    content_hash: str


@dataclass(frozen=True)
class SessionMetadata:
    """One-time description of a tracing session."""

    tracer: TracerInfo
    target: TargetInfo
    fstats: FileStats
    user: str
    host: str
    time: int

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        for section in ("tracer", "target"):
            d[section]["args"] = list(d[section]["args"])
            d[section]["envp"] = list(d[section]["envp"])
        return d


class SystemProbe:
    """Filesystem and host queries used while building metadata.

    Replace in tests to make metadata deterministic.
    """

    def cwd(self) -> str:
        return os.getcwd()

    def exists(self, path: str) -> bool:
        return os.path.exists(path)

    def stat(self, path: str) -> FileStats:
        st = os.stat(path)
        return FileStats(
            size=st.st_size,
            atime=int(st.st_atime),
            mtime=int(st.st_mtime),
            ctime=int(st.st_ctime),
        )

    def digest(self, path: str, algorithm: str) -> str:
        return compute_file_hash(path, algorithm)

    def hostname(self) -> str:
        return socket.gethostname()

    def login_name(self) -> str:
        return getpass.getuser()

    def current_time(self) -> int:
        return int(time.time())


class ArgvSplit(NamedTuple):
    """Result of splitting the tracer argument vector."""

    tracer_args: tuple[str, ...]
    target_path: str
    target_args: tuple[str, ...]


def split_argv(argv: Sequence[str]) -> ArgvSplit:
    """Split the full argument vector at the first ``"--"``.

    Without a separator every argument belongs to the tracer, the target
    gets no arguments and its path is taken from the last argument.

    Args:
        argv: Full process argument vector

    Returns:
        ArgvSplit of tracer arguments, raw target path and target argv
    """
    argv = tuple(argv)
    if ARGV_SEPARATOR in argv:
        dpos = argv.index(ARGV_SEPARATOR)
        target_args = argv[dpos + 1 :]
        if not target_args:
            raise TargetNotFoundError("", f"no target program after {ARGV_SEPARATOR!r}")
        return ArgvSplit(argv[:dpos], target_args[0], target_args)

    if not argv:
        raise TargetNotFoundError("", "empty argument vector, no target program")

    logger.warning(
        f"No {ARGV_SEPARATOR!r} in arguments; using {argv[-1]!r} as target with no arguments"
    )
    return ArgvSplit(argv, argv[-1], ())


def resolve_target(path: str, search_path: str, system: Optional[SystemProbe] = None) -> str:
    """Resolve the target executable like a shell resolves a command.

    Args:
        path: Path as given on the command line
        search_path: ``PATH``-style list separated by ``:`` or ``;``
        system: Filesystem probe

    Returns:
        Resolved path

    Raises:
        TargetNotFoundError: If no candidate exists
    """
    system = system or SystemProbe()
    resolved = path

    if not os.path.isabs(path):
        if system.exists(path):
            resolved = os.path.join(system.cwd(), path)
        elif not os.path.dirname(path):
            for root in re.split(r"[:;]", search_path):
                base = root if os.path.isabs(root) else os.path.join(system.cwd(), root)
                candidate = os.path.join(base, path)
                if system.exists(candidate):
                    resolved = candidate
                    break

    if not system.exists(resolved):
        raise TargetNotFoundError(path)
    return resolved


def _environment(env: Mapping[str, str]) -> tuple[str, ...]:
    return tuple(f"{key}={value}" for key, value in env.items())


def build_metadata(
    argv: Sequence[str],
    env: Mapping[str, str],
    config: TracerConfig,
    system: Optional[SystemProbe] = None,
) -> SessionMetadata:
    """Assemble the session metadata record.

    Args:
        argv: Full process argument vector, including the ``"--"`` separator
        env: Process environment
        config: Tracer configuration
        system: Filesystem and host probe

    Returns:
        SessionMetadata

    Raises:
        StartupError: If the target cannot be resolved, hashed or stat'ed,
            or the host/user cannot be determined
    """
    system = system or SystemProbe()
    split = split_argv(argv)
    path = resolve_target(split.target_path, env.get("PATH", ""), system)
    envp = _environment(env)

    try:
        content_hash = system.digest(path, config.hash_algorithm)
    except OSError as e:
        raise StartupError(f"failed to hash {path}: {e}", path=path) from e

    try:
        fstats = system.stat(path)
    except OSError as e:
        raise StartupError(f"failed to obtain file stats for {path}: {e}", path=path) from e

    try:
        user = system.login_name()
    except (OSError, KeyError) as e:
        raise StartupError(f"failed to obtain login name: {e}") from e
    if not user:
        raise StartupError("failed to obtain login name: empty")

    try:
        host = system.hostname()
    except OSError as e:
        raise StartupError(f"failed to obtain host name: {e}") from e
    if not host:
        raise StartupError("failed to obtain host name: empty")

    metadata = SessionMetadata(
        tracer=TracerInfo(
            name=config.name,
            version=config.version,
            args=split.tracer_args,
            envp=envp,
        ),
        target=TargetInfo(
            path=path,
            args=split.target_args,
            envp=envp,
            content_hash=content_hash,
        ),
        fstats=fstats,
        user=user,
        host=host,
        time=system.current_time(),
    )
    logger.info(f"Session metadata for {path} ({config.hash_algorithm} {content_hash})")
    return metadata
