"""Unit tests for the operand codec and frame types."""

import pytest

from frametrace.frames import (
    InstructionFrame,
    ModuleLoadFrame,
    OperandDescriptor,
    PendingFrame,
    SyscallFrame,
    Taint,
    Usage,
    encode_operand,
)


class TestEncodeOperand:
    """Test encode_operand."""

    def test_bit_length_from_value(self):
        """Test bit length defaults to 8 bits per value byte."""
        op = encode_operand(Usage.READ, b"\x01\x02\x03\x04", register="EAX")

        assert op.bit_length == 32

    def test_declared_width_wins(self):
        """Test a nonzero declared width overrides the byte count."""
        op = encode_operand(Usage.READ, b"\x01\x02\x03\x04", 1, register="EAX")

        assert op.bit_length == 1

    def test_empty_value(self):
        """Test empty values encode with zero bit length."""
        assert encode_operand(Usage.READ, b"", address=0x10).bit_length == 0
        assert encode_operand(Usage.READ, b"", 16, address=0x10).bit_length == 16

    def test_read_usage(self):
        """Test read operands set only the read bit."""
        op = encode_operand(Usage.READ, b"\xff", address=0x1000)

        assert op.is_read is True
        assert op.is_written is False
        assert op.is_index is False
        assert op.is_base is False

    def test_write_usage(self):
        """Test write operands set only the written bit."""
        op = encode_operand(Usage.WRITE, b"\xff", address=0x1000)

        assert op.is_read is False
        assert op.is_written is True

    def test_value_verbatim_and_untainted(self):
        """Test the value is kept verbatim with no taint."""
        op = encode_operand(Usage.WRITE, bytearray(b"\x00\xab"), register="AX")

        assert op.value == b"\x00\xab"
        assert isinstance(op.value, bytes)
        assert op.taint is Taint.UNTRACKED

    def test_memory_vs_register(self):
        """Test exactly one of address or register is carried."""
        mem = encode_operand(Usage.READ, b"\x01", address=0x1000)
        reg = encode_operand(Usage.READ, b"\x01", register="AL")

        assert mem.is_memory and mem.register is None
        assert not reg.is_memory and reg.register == "AL"

    def test_address_zero_is_memory(self):
        """Test address 0 still marks a memory operand."""
        op = encode_operand(Usage.READ, b"\x01", address=0)

        assert op.is_memory

    def test_requires_exactly_one_location(self):
        """Test both or neither location is rejected."""
        with pytest.raises(ValueError):
            encode_operand(Usage.READ, b"\x01")
        with pytest.raises(ValueError):
            encode_operand(Usage.READ, b"\x01", address=1, register="AL")


class TestOperandDescriptor:
    """Test operand serialization."""

    def test_memory_to_dict(self):
        """Test memory operand dictionary layout."""
        d = encode_operand(Usage.READ, b"\x01", address=0x1000).to_dict()

        assert d["bit_length"] == 8
        assert d["usage"] == {"read": True, "written": False, "index": False, "base": False}
        assert d["value"] == "01"
        assert d["taint"] == "no_taint"
        assert d["mem_operand"] == {"address": 0x1000}
        assert "reg_operand" not in d

    def test_register_to_dict(self):
        """Test register operand dictionary layout."""
        d = encode_operand(Usage.WRITE, b"\x02\x00", register="AX").to_dict()

        assert d["reg_operand"] == {"name": "AX"}
        assert "mem_operand" not in d


class TestPendingFrame:
    """Test the mutable frame under construction."""

    def test_partitions_by_usage(self):
        """Test reads go to the pre list and writes to the post list."""
        pending = PendingFrame(address=0x400000, thread_id=1, raw_bytes=b"\x90")
        r1 = encode_operand(Usage.READ, b"\x01", address=1)
        w1 = encode_operand(Usage.WRITE, b"\x02", address=1)
        r2 = encode_operand(Usage.READ, b"\x03", register="EAX")

        for op in (r1, w1, r2):
            pending.add(op)

        assert pending.pre_operands == [r1, r2]
        assert pending.post_operands == [w1]

    def test_freeze(self):
        """Test freezing gives an immutable frame with tuples."""
        pending = PendingFrame(address=0x400000, thread_id=1, raw_bytes=b"\x90")
        pending.add(encode_operand(Usage.READ, b"\x01", address=1))

        frame = pending.freeze()

        assert isinstance(frame, InstructionFrame)
        assert isinstance(frame.pre_operands, tuple)
        assert frame.post_operands == ()
        with pytest.raises(AttributeError):
            frame.address = 0


class TestFrameSerialization:
    """Test frame to_dict layouts."""

    def test_instruction_frame(self):
        """Test instruction frame dictionary."""
        frame = InstructionFrame(
            address=0x400000,
            thread_id=7,
            raw_bytes=b"\x48\x89\xe5",
            pre_operands=(encode_operand(Usage.READ, b"\x01", register="RSP"),),
        )

        d = frame.to_dict()

        assert frame.kind == "std_frame"
        assert d["address"] == 0x400000
        assert d["thread_id"] == 7
        assert d["rawbytes"] == "4889e5"
        assert len(d["operand_pre_list"]) == 1
        assert d["operand_post_list"] == []

    def test_modload_frame(self):
        """Test module load frame dictionary."""
        frame = ModuleLoadFrame("libc.so.6", 0x7F0000, 0x7FFFFF)

        assert frame.kind == "modload_frame"
        assert frame.to_dict() == {
            "module_name": "libc.so.6",
            "low_address": 0x7F0000,
            "high_address": 0x7FFFFF,
        }

    def test_syscall_frame_keeps_argument_order(self):
        """Test syscall arguments keep call-site order."""
        frame = SyscallFrame(address=0x401000, thread_id=1, number=1, arguments=(3, 1, 2))

        assert frame.kind == "syscall_frame"
        assert frame.to_dict()["argument_list"] == [3, 1, 2]
