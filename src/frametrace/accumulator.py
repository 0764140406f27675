"""Instruction frame accumulation.

The accumulator owns at most one open instruction frame. Operand events
are encoded and appended to the open frame's pre-state (reads) or
post-state (writes) list. The frame is finalized, exactly once, when the
next ``OperationStart`` arrives or when ``finish()`` is called at session
end. Finalized frames are handed to the ``emit`` callback and never
touched again.
"""

from __future__ import annotations

from typing import Callable, Optional

from frametrace.errors import NoOpenFrameError
from frametrace.events import (
    FlagsRead,
    FlagsWrite,
    MemoryRead,
    MemoryWrite,
    OperandEvent,
    OperationStart,
    RegisterRead,
    RegisterWrite,
)
from frametrace.flags import decompose
from frametrace.frames import InstructionFrame, PendingFrame, Usage, encode_operand
from frametrace.utils.logging import get_logger

logger = get_logger(__name__)

_USAGE: dict[type, Usage] = {
    RegisterRead: Usage.READ,
    MemoryRead: Usage.READ,
    FlagsRead: Usage.READ,
    RegisterWrite: Usage.WRITE,
    MemoryWrite: Usage.WRITE,
    FlagsWrite: Usage.WRITE,
}


class FrameAccumulator:
    """Groups operand events into instruction frames.

    Args:
        emit: Callback receiving each finalized InstructionFrame
    """

    def __init__(self, emit: Callable[[InstructionFrame], None]):
        self._emit = emit
        self._pending: Optional[PendingFrame] = None
        self.frames_emitted = 0

    @property
    def is_open(self) -> bool:
        """True while an instruction frame is under construction."""
        return self._pending is not None

    @property
    def current_address(self) -> Optional[int]:
        return self._pending.address if self._pending is not None else None

    def start(self, event: OperationStart) -> None:
        """Finalize the open frame, if any, and open a frame for ``event``."""
        self.finish()
        self._pending = PendingFrame(
            address=event.address,
            thread_id=event.thread_id,
            raw_bytes=bytes(event.raw_bytes),
        )

    def add(self, event: OperandEvent) -> None:
        """Encode an operand event into the open frame.

        Raises:
            NoOpenFrameError: If no instruction frame is open
            TypeError: If ``event`` is not an operand event
        """
        usage = _USAGE.get(type(event))
        if usage is None:
            raise TypeError(f"Not an operand event: {event!r}")

        pending = self._pending
        if pending is None:
            raise NoOpenFrameError(event)

        if isinstance(event, (RegisterRead, RegisterWrite)):
            pending.add(encode_operand(usage, event.value, event.width, register=event.name))
        elif isinstance(event, (MemoryRead, MemoryWrite)):
            pending.add(encode_operand(usage, event.value, address=event.address))
        else:
            # flag width is the declared width, not the one-byte wrapping
            for name, value, width in decompose(event, usage):
                pending.add(encode_operand(usage, value, width, register=name))

    def finish(self) -> Optional[InstructionFrame]:
        """Finalize the open frame.

        Returns:
            The emitted frame, or None if no frame was open
        """
        pending = self._pending
        if pending is None:
            return None

        # ownership moves to the sink; never emitted twice
        self._pending = None
        frame = pending.freeze()
        self._emit(frame)
        self.frames_emitted += 1
        logger.debug(
            f"Finalized frame {frame.address:#x}: "
            f"{len(frame.pre_operands)} pre, {len(frame.post_operands)} post"
        )
        return frame
