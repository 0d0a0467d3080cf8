"""Flashing protocol layer - frames, deadline-bounded transport, session sequencing."""

from .constants import (
    CHUNK_SIZE,
    CMD_END,
    CMD_ERASE,
    CMD_PROGRAM,
    CMD_VERIFY,
    DEADLINE,
    MAX_FIRMWARE_SIZE,
)
from .errors import (
    FlasherError,
    OversizedImage,
    TransportTimeout,
    TransportError,
    MalformedAcknowledgment,
    DeviceRejected,
    ShortWrite,
    FrameError,
    FirmwareLoadError,
    FlashCancelled,
)
from .frame import (
    FrameBuilder,
    CommandFrame,
    build_frame,
    checksum,
    plan_frames,
)
from .transport import Transport, TransportGuard
from .sequencer import Flasher, FlashSession, SessionState, program

__all__ = [
    # Constants
    "CHUNK_SIZE",
    "CMD_END",
    "CMD_ERASE",
    "CMD_PROGRAM",
    "CMD_VERIFY",
    "DEADLINE",
    "MAX_FIRMWARE_SIZE",
    # Errors
    "FlasherError",
    "OversizedImage",
    "TransportTimeout",
    "TransportError",
    "MalformedAcknowledgment",
    "DeviceRejected",
    "ShortWrite",
    "FrameError",
    "FirmwareLoadError",
    "FlashCancelled",
    # Frames
    "FrameBuilder",
    "CommandFrame",
    "build_frame",
    "checksum",
    "plan_frames",
    # Transport
    "Transport",
    "TransportGuard",
    # Session
    "Flasher",
    "FlashSession",
    "SessionState",
    "program",
]
