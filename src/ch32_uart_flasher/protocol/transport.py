"""
Deadline-bounded I/O against the serial transport.

Every write and read runs in its own daemon worker thread and is joined with
the protocol deadline. Whichever finishes first decides the outcome:

- worker returns in time: its result is checked and returned
- deadline fires first: TransportTimeout, the worker is abandoned

Fire-and-forget on timeout: the abandoned worker is never cancelled, it may
still be blocked inside the transport. It writes only into its own call
record, so its late result cannot leak into a later call. Before the next
call the straggler gets one more deadline to finish and the input buffer is
drained, so bytes it left behind are not read as the next acknowledgment.
"""

import logging
import threading
from typing import Any, Callable, Optional, Protocol

import serial

from .constants import ACK_LENGTH, DEADLINE, RES_SUCCESS
from .errors import (
    DeviceRejected,
    MalformedAcknowledgment,
    ShortWrite,
    TransportError,
    TransportTimeout,
)

logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Byte duplex the guard drives. ``serial.Serial`` satisfies it as-is."""

    def write(self, data: bytes) -> Optional[int]:
        ...

    def read(self, size: int) -> bytes:
        ...


class _Call:
    """Outcome slot owned by exactly one worker thread."""

    __slots__ = ("result", "error", "done")

    def __init__(self) -> None:
        self.result: Any = None
        self.error: Optional[BaseException] = None
        self.done = threading.Event()


class TransportGuard:
    """
    Runs single transport operations under a deadline.

    Example:
        guard = TransportGuard(uart)
        guard.write(frame)
        guard.read_ack()
    """

    def __init__(self, transport: Transport, deadline: float = DEADLINE):
        if deadline <= 0:
            raise ValueError(f"deadline must be positive, got {deadline}")
        self.transport = transport
        self.deadline = deadline
        self._straggler: Optional[threading.Thread] = None

    def _settle(self) -> None:
        """Wait out a worker abandoned by an earlier timeout, then drain input."""
        worker = self._straggler
        if worker is None:
            return
        worker.join(self.deadline)
        if worker.is_alive():
            raise TransportError("transport still busy with an abandoned call")
        self._straggler = None
        drain = getattr(self.transport, "reset_input_buffer", None)
        if callable(drain):
            try:
                drain()
            except (serial.SerialException, OSError) as exc:
                raise TransportError(f"cannot drain UART: {exc}") from exc
            logger.debug("Drained input after abandoned call")

    def _run(self, operation: str, fn: Callable[[], Any]) -> Any:
        self._settle()

        call = _Call()

        def worker() -> None:
            try:
                call.result = fn()
            except BaseException as exc:  # handed to the waiting caller
                call.error = exc
            finally:
                call.done.set()

        thread = threading.Thread(target=worker, name=f"uart-{operation}", daemon=True)
        thread.start()

        if not call.done.wait(self.deadline):
            self._straggler = thread
            logger.debug("UART %s abandoned after %.3fs", operation, self.deadline)
            raise TransportTimeout(operation, self.deadline)

        if call.error is not None:
            exc = call.error
            if isinstance(exc, serial.SerialTimeoutException):
                raise TransportTimeout(operation, self.deadline) from exc
            if isinstance(exc, EOFError):
                raise TransportError(f"UART {operation} closed: {exc}") from exc
            if isinstance(exc, Exception):
                raise TransportError(f"cannot {operation} UART: {exc}") from exc
            raise exc
        return call.result

    def write(self, frame: bytes) -> None:
        """Send one frame; all of it must be accepted by the transport."""
        data = bytes(frame)
        written = self._run("write", lambda: self.transport.write(data))
        if written != len(data):
            raise ShortWrite(written, len(data))
        logger.debug(f">>> {data.hex().upper()}")

    def read(self, size: int = ACK_LENGTH) -> bytes:
        """Receive exactly ``size`` bytes with a single transport read."""
        data = self._run("read", lambda: self.transport.read(size))
        data = bytes(data or b"")
        if not data:
            # pyserial returns nothing when its own timeout expires
            if isinstance(self.transport, serial.SerialBase):
                raise TransportTimeout("read", self.deadline)
            raise TransportError("UART response closed")
        logger.debug(f"<<< {data.hex().upper()}")
        if len(data) != size:
            raise MalformedAcknowledgment(data, size)
        return data

    def read_ack(self) -> bytes:
        """Receive a 2-byte acknowledgment and require a success status."""
        ack = self.read(ACK_LENGTH)
        if ack[0] != RES_SUCCESS:
            raise DeviceRejected(ack[0])
        return ack
