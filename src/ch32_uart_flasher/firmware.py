"""
Firmware sources for flashing sessions.

A session reads the image twice (write pass, verify pass), so a source
hands out a fresh immutable copy on every ``load()``. Only raw binary
images are supported.
"""

import hashlib
import logging
import os
from pathlib import Path
from typing import Protocol, Union

from ch32_uart_flasher.protocol.constants import MAX_FIRMWARE_SIZE
from ch32_uart_flasher.protocol.errors import FirmwareLoadError, OversizedImage

logger = logging.getLogger(__name__)


class FirmwareSource(Protocol):
    def load(self) -> bytes:
        ...

    def describe(self) -> str:
        ...


class FileFirmware:
    """Raw binary image read from disk on every ``load()``."""

    def __init__(self, path: Union[str, os.PathLike]):
        self.path = Path(path)

    def load(self) -> bytes:
        try:
            data = self.path.read_bytes()
        except OSError as exc:
            raise FirmwareLoadError(f"cannot open firmware {self.path}: {exc}") from exc
        logger.debug(f"Loaded {len(data)} bytes from {self.path}")
        return data

    def describe(self) -> str:
        return str(self.path)


class BufferFirmware:
    """Image already held in memory."""

    def __init__(self, data: Union[bytes, bytearray, memoryview], name: str = "<buffer>"):
        self._data = bytes(data)
        self.name = name

    def load(self) -> bytes:
        return self._data

    def describe(self) -> str:
        return self.name


def as_firmware_source(firmware) -> FirmwareSource:
    """Coerce a path, a bytes-like object or an existing source."""
    if isinstance(firmware, (bytes, bytearray, memoryview)):
        return BufferFirmware(firmware)
    if isinstance(firmware, (str, os.PathLike)):
        return FileFirmware(firmware)
    if hasattr(firmware, "load"):
        return firmware
    raise TypeError(f"unsupported firmware source: {type(firmware).__name__}")


def check_firmware_size(size: int, limit: int = MAX_FIRMWARE_SIZE) -> None:
    """Reject images larger than the flash capacity."""
    if size > limit:
        raise OversizedImage(size, limit)


def describe_size(size: int) -> str:
    return f"{size:,} bytes"


def firmware_sha256(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()
