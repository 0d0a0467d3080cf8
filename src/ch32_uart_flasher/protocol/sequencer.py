"""
CH32V003 UART Flashing Session

Drives one complete flashing run over a borrowed transport:

1. Erase (len=2, no payload) -> expect ack [0x00, xx]
2. Program the image in 60-byte chunks, arg1/arg2 = offset (little-endian)
   -> expect ack after every chunk
3. Reload the image and send the same chunks with the Verify command
   -> expect ack after every chunk
4. End (len=2, no payload), no ack is read

Any failure aborts the run at once. Nothing is retried and a new session
always starts from Erase.
"""

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from ch32_uart_flasher.firmware import as_firmware_source, check_firmware_size, describe_size

from .constants import (
    CHUNK_SIZE,
    CMD_END,
    CMD_ERASE,
    CMD_PROGRAM,
    CMD_VERIFY,
    CONTROL_LENGTH,
    DEADLINE,
    MAX_FIRMWARE_SIZE,
)
from .errors import FlashCancelled, FlasherError
from .frame import FrameBuilder, split_address
from .transport import Transport, TransportGuard

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, int, int], None]


class SessionState(Enum):
    IDLE = "idle"
    ERASING = "erasing"
    WRITING_FIRMWARE = "writing_firmware"
    VERIFYING_FIRMWARE = "verifying_firmware"
    ENDING = "ending"
    COMPLETE = "complete"
    FAILED = "failed"

    @property
    def phase(self) -> str:
        return _PHASES.get(self, self.value)


_PHASES = {
    SessionState.ERASING: "erase",
    SessionState.WRITING_FIRMWARE: "write",
    SessionState.VERIFYING_FIRMWARE: "verify",
    SessionState.ENDING: "end",
}

# Linear order; FAILED is reachable from any non-terminal state.
_NEXT = {
    SessionState.IDLE: SessionState.ERASING,
    SessionState.ERASING: SessionState.WRITING_FIRMWARE,
    SessionState.WRITING_FIRMWARE: SessionState.VERIFYING_FIRMWARE,
    SessionState.VERIFYING_FIRMWARE: SessionState.ENDING,
    SessionState.ENDING: SessionState.COMPLETE,
}


@dataclass
class FlashSession:
    """Run-level state. Lives for one ``Flasher.run()`` only."""

    state: SessionState = SessionState.IDLE
    offset: int = 0
    image_size: int = 0
    frames_sent: int = 0
    acks_received: int = 0
    error: Optional[FlasherError] = None

    @property
    def ok(self) -> bool:
        return self.state is SessionState.COMPLETE


class Flasher:
    """
    Sequential protocol driver for one flashing session.

    The transport is borrowed: the caller opens it before ``run()`` and
    closes it afterwards.

    Example:
        with uart_session("/dev/ttyUSB0") as uart:
            Flasher(uart, "blink.bin").run()
    """

    def __init__(
        self,
        transport: Transport,
        firmware,
        *,
        deadline: float = DEADLINE,
        progress_cb: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
    ):
        self.guard = TransportGuard(transport, deadline=deadline)
        self.source = as_firmware_source(firmware)
        self.progress_cb = progress_cb
        self.cancel_event = cancel_event
        self.builder = FrameBuilder()
        self.session = FlashSession()

    def _advance(self, expected: SessionState) -> None:
        nxt = _NEXT.get(self.session.state)
        if nxt is not expected:
            raise FlasherError(
                f"cannot enter {expected.value} from {self.session.state.value}"
            )
        self.session.state = nxt

    def _check_cancel(self) -> None:
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise FlashCancelled("flashing cancelled by caller")

    def _send(self, frame: bytes, *, ack: bool = True) -> None:
        self._check_cancel()
        self.guard.write(frame)
        self.session.frames_sent += 1
        if ack:
            self.guard.read_ack()
            self.session.acks_received += 1

    def _load_image(self) -> bytes:
        image = self.source.load()
        check_firmware_size(len(image), MAX_FIRMWARE_SIZE)
        return image

    def erase(self) -> None:
        self._advance(SessionState.ERASING)
        logger.info("Erase...")
        self.builder.write_command(CMD_ERASE, CONTROL_LENGTH, 0, 0)
        self._send(self.builder.finish())
        logger.info("Erase done")

    def program(self, image: Optional[bytes] = None, verify: bool = False) -> None:
        """
        Send the image chunk by chunk with Program (or Verify) frames.

        With no ``image`` a fresh copy is loaded from the firmware source.
        """
        if verify:
            self._advance(SessionState.VERIFYING_FIRMWARE)
            cmd = CMD_VERIFY
        else:
            self._advance(SessionState.WRITING_FIRMWARE)
            cmd = CMD_PROGRAM
        phase = self.session.state.phase
        if image is None:
            image = self._load_image()
        total = len(image)

        logger.info(f"{phase.capitalize()} {describe_size(total)}...")
        self.session.offset = 0
        while self.session.offset < total:
            pos = self.session.offset
            size = min(CHUNK_SIZE, total - pos)
            arg1, arg2 = split_address(pos)

            self.builder.write_command(cmd, size, arg1, arg2)
            for byte in image[pos:pos + size]:
                self.builder.append(byte)
            self._send(self.builder.finish())

            self.session.offset = pos + size
            logger.debug("%s chunk at 0x%04X acknowledged (%d/%d bytes)", phase, pos, self.session.offset, total)
            if self.progress_cb:
                self.progress_cb(phase, self.session.offset, total)
        logger.info(f"{phase.capitalize()} done")

    def send_end(self) -> None:
        self._advance(SessionState.ENDING)
        self.builder.write_command(CMD_END, CONTROL_LENGTH, 0, 0)
        # The bootloader does not acknowledge End.
        self._send(self.builder.finish(), ack=False)
        self.session.state = SessionState.COMPLETE
        logger.info("End sent")

    def run(self) -> FlashSession:
        """Erase, write, verify and end. Raises on the first failure."""
        if self.session.state is not SessionState.IDLE:
            raise FlasherError("a Flasher runs a single session; create a new one")
        try:
            image = self._load_image()
            self.session.image_size = len(image)
            logger.info(f"Firmware {self.source.describe()}: {describe_size(len(image))}")

            self.erase()
            self.program(image)
            self.program(verify=True)
            self.send_end()
        except FlasherError as exc:
            self._fail(exc)
            raise
        return self.session

    def _fail(self, exc: FlasherError) -> None:
        state = self.session.state
        if exc.phase is None and state in _PHASES:
            exc.phase = state.phase
        self.builder.reset()
        self.session.state = SessionState.FAILED
        self.session.error = exc
        logger.error(f"Flashing failed: {exc}")


def program(transport: Transport, firmware, **kwargs) -> FlashSession:
    """Flash ``firmware`` over an already open ``transport``."""
    return Flasher(transport, firmware, **kwargs).run()
