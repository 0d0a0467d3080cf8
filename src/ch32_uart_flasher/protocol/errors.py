"""Exception types raised by the flashing protocol engine."""

from typing import Optional


class FlasherError(Exception):
    """
    Base exception for all flashing failures.

    The session sequencer fills in ``phase`` ("erase", "write", "verify",
    "end") when an error escapes one of its phases.
    """

    kind = "flasher_error"

    def __init__(self, message: str = "", *, phase: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.phase = phase

    def __str__(self) -> str:
        if self.phase:
            return f"{self.phase} error: {self.message}"
        return self.message


class OversizedImage(FlasherError):
    """Firmware image is larger than the device capacity."""

    kind = "oversized_image"

    def __init__(self, size: int, limit: int):
        super().__init__(f"over firmware size: {size:,} bytes (limit {limit:,} bytes)")
        self.size = size
        self.limit = limit


class TransportTimeout(FlasherError):
    """A single write or read did not complete within its deadline."""

    kind = "transport_timeout"

    def __init__(self, operation: str, deadline: float):
        super().__init__(f"UART {operation} timeout after {deadline:g}s")
        self.operation = operation
        self.deadline = deadline


class TransportError(FlasherError):
    """Transport reported a fault or the stream closed unexpectedly."""

    kind = "transport_error"


class MalformedAcknowledgment(FlasherError):
    """Device answered with fewer bytes than an acknowledgment needs."""

    kind = "malformed_ack"

    def __init__(self, received: bytes, expected: int):
        super().__init__(
            f"cannot get response: got {len(received)}/{expected} bytes ({received.hex() or 'empty'})"
        )
        self.received = received
        self.expected = expected


class DeviceRejected(FlasherError):
    """Acknowledgment status byte was not success."""

    kind = "device_rejected"

    def __init__(self, status: int):
        super().__init__(f"response status is not success: 0x{status:02X}")
        self.status = status


class ShortWrite(FlasherError):
    """Transport accepted fewer bytes than the frame length."""

    kind = "short_write"

    def __init__(self, written: Optional[int], expected: int):
        super().__init__(f"cannot write all buffer: sent {written}/{expected} bytes")
        self.written = written
        self.expected = expected


class FrameError(FlasherError):
    """Frame fields do not fit the wire format, or a raw frame is invalid."""

    kind = "frame_error"


class FirmwareLoadError(FlasherError):
    """Firmware source could not be read."""

    kind = "firmware_load_error"


class FlashCancelled(FlasherError):
    """Caller asked the session to stop between commands."""

    kind = "cancelled"
