"""Shared fixtures for frametrace tests."""

import os

import pytest

from frametrace.config import TracerConfig
from frametrace.metadata import FileStats, SystemProbe
from frametrace.utils.types import Machine, ProcessArch


class FakeSystem(SystemProbe):
    """In-memory filesystem and host for deterministic metadata."""

    def __init__(self, files=(), cwd="/work", user="alice", host="tracehost", now=1700000000):
        self._cwd = cwd
        self.files = {
            path: FileStats(size=1024 + i, atime=100 + i, mtime=200 + i, ctime=300 + i)
            for i, path in enumerate(files)
        }
        self.user = user
        self.host = host
        self.now = now
        self.hashed = []

    def _abs(self, path):
        if not os.path.isabs(path):
            path = os.path.join(self._cwd, path)
        return os.path.normpath(path)

    def cwd(self):
        return self._cwd

    def exists(self, path):
        return self._abs(path) in self.files

    def stat(self, path):
        try:
            return self.files[self._abs(path)]
        except KeyError:
            raise FileNotFoundError(path)

    def digest(self, path, algorithm):
        if not self.exists(path):
            raise FileNotFoundError(path)
        self.hashed.append(path)
        return f"{algorithm}-of-{self._abs(path)}"

    def hostname(self):
        if self.host is None:
            raise OSError("no hostname")
        return self.host

    def login_name(self):
        if self.user is None:
            raise OSError("no controlling terminal")
        return self.user

    def current_time(self):
        return self.now


@pytest.fixture
def fake_system():
    """Filesystem with a target in the working directory and one on PATH."""
    return FakeSystem(files=["/work/a.out", "/usr/bin/ls"])


@pytest.fixture
def config():
    """Tracer config pinned to x86-64 regardless of the host."""
    return TracerConfig(arch=ProcessArch.for_machine(Machine.X86_64))


@pytest.fixture
def make_system():
    """FakeSystem constructor for tests that lay out their own files."""
    return FakeSystem
