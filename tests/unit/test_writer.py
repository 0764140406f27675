"""Unit tests for event dispatch and session lifecycle."""

import pytest

from frametrace.errors import (
    NoOpenFrameError,
    SinkError,
    StartupError,
    TargetNotFoundError,
    WriterClosedError,
)
from frametrace.events import (
    FlagsRead,
    FlagsWrite,
    MemoryRead,
    MemoryWrite,
    ModuleLoad,
    OperationStart,
    RegisterRead,
    RegisterWrite,
    SystemCall,
    Unsupported,
)
from frametrace.flags import x86_eflags
from frametrace.frames import InstructionFrame, ModuleLoadFrame, SyscallFrame
from frametrace.sink.base import MemoryTraceSink, TraceSink
from frametrace.utils.types import Architecture, Machine
from frametrace.writer import FrameWriter

ARGV = ["bpt", "-o", "trace.out", "--", "a.out", "input.txt"]
ENV = {"PATH": "/usr/bin", "HOME": "/home/alice"}


@pytest.fixture
def writer(fake_system, config):
    return FrameWriter.open(
        "trace.out", ARGV, ENV, config, sink_factory=MemoryTraceSink.open, system=fake_system
    )


class FailingSink(TraceSink):
    """Sink whose store or close fails on demand."""

    def __init__(self, fail_store=False, fail_close=False):
        super().__init__()
        self.fail_store = fail_store
        self.fail_close = fail_close
        self.frames = []
        self.finish_calls = 0

    def _store(self, frame):
        if self.fail_store:
            raise SinkError("store failed")
        self.frames.append(frame)

    def _finish(self):
        self.finish_calls += 1
        if self.fail_close:
            raise SinkError("flush failed")


class TestOpen:
    """Test session start."""

    def test_open_passes_metadata_and_arch(self, writer):
        """Test the sink receives metadata and the configured machine."""
        sink = writer.sink

        assert isinstance(sink, MemoryTraceSink)
        assert sink.metadata is writer.metadata
        assert sink.architecture is Architecture.I386
        assert sink.machine is Machine.X86_64
        assert writer.metadata.target.path == "/work/a.out"

    def test_startup_error_opens_no_sink(self, fake_system, config):
        """Test metadata failures abort before the sink is opened."""
        opened = []

        def factory(*args):
            opened.append(args)
            return MemoryTraceSink.open(*args)

        with pytest.raises(TargetNotFoundError):
            FrameWriter.open(
                "trace.out",
                ["bpt", "--", "missing"],
                ENV,
                config,
                sink_factory=factory,
                system=fake_system,
            )
        assert opened == []

    def test_missing_host_is_startup_error(self, fake_system, config):
        """Test host capture failures are fatal."""
        fake_system.host = None

        with pytest.raises(StartupError):
            FrameWriter.open(
                "trace.out", ARGV, ENV, config, sink_factory=MemoryTraceSink.open, system=fake_system
            )


class TestDispatch:
    """Test routing of events to frames."""

    def test_module_load_is_immediate(self, writer):
        """Test module loads append a frame at once."""
        writer.write(ModuleLoad("libc.so.6", 0x7F000000, 0x7F1FFFFF))

        assert writer.sink.frames == [ModuleLoadFrame("libc.so.6", 0x7F000000, 0x7F1FFFFF)]

    def test_module_load_mid_instruction(self, writer):
        """Test a module load does not touch the open instruction frame."""
        writer.write(OperationStart(0x400000, 1, b"\x90"))
        writer.write(MemoryRead(0x1000, b"\x01"))
        writer.write(ModuleLoad("libm.so.6", 0x10000, 0x1FFFF))
        writer.write(MemoryWrite(0x1000, b"\x02"))

        assert writer.in_instruction
        assert writer.sink.frames == [ModuleLoadFrame("libm.so.6", 0x10000, 0x1FFFF)]

        writer.close()

        frames = writer.sink.frames
        assert isinstance(frames[1], InstructionFrame)
        assert len(frames[1].pre_operands) == 1
        assert len(frames[1].post_operands) == 1

    def test_syscall_frame(self, writer):
        """Test syscall arguments keep their order."""
        writer.write(SystemCall(0x401000, 3, 231, (0, 0x10, 0x20)))

        assert writer.sink.frames == [SyscallFrame(0x401000, 3, 231, (0, 0x10, 0x20))]

    def test_frames_in_event_order(self, writer):
        """Test instruction frames are appended at their boundary."""
        writer.write_all(
            [
                OperationStart(0x400000, 1, b"\x0f\x05"),
                SystemCall(0x400000, 1, 60, (0,)),
                OperationStart(0x400002, 1, b"\x90"),
                ModuleLoad("ld.so", 0, 0x1000),
            ]
        )
        writer.close()

        kinds = [(f.kind, getattr(f, "address", None)) for f in writer.sink.frames]
        assert kinds == [
            ("syscall_frame", 0x400000),
            ("std_frame", 0x400000),
            ("modload_frame", None),
            ("std_frame", 0x400002),
        ]

    def test_unsupported_is_skipped(self, writer):
        """Test unsupported events are counted and never raise."""
        writer.write(Unsupported("context_switch"))
        writer.write(Unsupported("context_switch"))
        writer.write(object())

        assert writer.sink.frames == []
        assert writer.skipped == {"context_switch": 2, "object": 1}

    def test_every_operand_event_reaches_the_frame(self, writer):
        """Test each operand event kind lands in the open instruction frame."""
        flags = x86_eflags({"CF": "rw"})
        writer.write(OperationStart(0x1000, 1, b"\x90"))
        writer.write_all(
            [
                RegisterRead("EAX", b"\x01\x00\x00\x00"),
                MemoryRead(0x2000, b"\x02"),
                FlagsRead(b"\x01\x00\x00\x00", flags),
                RegisterWrite("EAX", b"\x03\x00\x00\x00"),
                MemoryWrite(0x2000, b"\x04"),
                FlagsWrite(b"\x00\x00\x00\x00", flags),
            ]
        )
        writer.close()

        (frame,) = writer.sink.frames
        assert not writer.skipped
        assert len(frame.pre_operands) == 3
        assert len(frame.post_operands) == 3

    def test_operand_without_instruction(self, writer):
        """Test operand events before any instruction are usage errors."""
        with pytest.raises(NoOpenFrameError):
            writer.write(RegisterRead("EAX", b"\x00" * 4))

    def test_write_all_counts(self, writer):
        """Test write_all returns the number of processed events."""
        assert writer.write_all([OperationStart(0x1, 1, b"\x90"), Unsupported("x")]) == 2


class TestClose:
    """Test teardown."""

    def test_close_flushes_open_frame(self, writer):
        """Test the open instruction frame is finalized before the sink closes."""
        writer.write(OperationStart(0x400000, 1, b"\x90"))
        writer.close()

        assert writer.closed
        assert writer.sink.closed
        assert [f.address for f in writer.sink.frames] == [0x400000]
        assert writer.teardown_error is None

    def test_close_is_idempotent(self, writer):
        """Test closing twice appends nothing more."""
        writer.write(OperationStart(0x400000, 1, b"\x90"))
        writer.close()
        writer.close()

        assert len(writer.sink.frames) == 1

    def test_write_after_close(self, writer):
        """Test writes after close are usage errors."""
        writer.close()

        with pytest.raises(WriterClosedError):
            writer.write(ModuleLoad("x", 0, 1))

    def test_context_manager(self, fake_system, config):
        """Test leaving the block closes the session."""
        with FrameWriter.open(
            "t", ARGV, ENV, config, sink_factory=MemoryTraceSink.open, system=fake_system
        ) as writer:
            writer.write(OperationStart(0x400000, 1, b"\x90"))

        assert writer.sink.closed
        assert len(writer.sink.frames) == 1

    def test_close_failure_is_reported_not_raised(self):
        """Test sink close failures are recorded on the writer."""
        sink = FailingSink(fail_close=True)
        writer = FrameWriter(sink)
        writer.write(OperationStart(0x400000, 1, b"\x90"))

        writer.close()

        assert writer.closed
        assert len(sink.frames) == 1
        assert writer.teardown_error is not None
        assert isinstance(writer.teardown_error.cause, SinkError)

    def test_finish_failure_still_closes_sink(self):
        """Test a failing final append does not prevent closing the sink."""
        sink = FailingSink(fail_store=True)
        writer = FrameWriter(sink)
        writer.write(OperationStart(0x400000, 1, b"\x90"))

        writer.close()

        assert sink.finish_calls == 1
        assert "finish failed" in str(writer.teardown_error)
