"""
Command frame construction for the CH32V003 UART bootloader.

Frame format:
    [ 0x57 | 0xAB | cmd | len | arg1 | arg2 | payload | sum8 ]

sum8 is the wrapping 8-bit sum of every byte from cmd through the last
payload byte. The builder accumulates it while bytes are appended, so a
frame can be composed header first and payload byte by byte.
"""

from dataclasses import dataclass
from typing import Iterable, Iterator, List, Tuple

from .constants import (
    CHUNK_SIZE,
    CMD_END,
    CMD_ERASE,
    CMD_PROGRAM,
    CMD_VERIFY,
    COMMAND_NAMES,
    CONTROL_LENGTH,
    HEADER_SIZE,
    SYNC_HEADER,
)
from .errors import FrameError


def checksum(data: Iterable[int]) -> int:
    """Wrapping 8-bit sum of ``data``."""
    return sum(data) & 0xFF


def split_address(offset: int) -> Tuple[int, int]:
    """Encode a firmware offset as (arg1, arg2), little-endian."""
    if not (0 <= offset <= 0xFFFF):
        raise FrameError(f"offset {offset} does not fit in 16 bits")
    return offset % 256, offset // 256


def _check_u8(name: str, value: int) -> None:
    if not (0 <= value <= 0xFF):
        raise FrameError(f"{name} must fit in uint8, got {value}")


class FrameBuilder:
    """
    Incremental frame builder with a running checksum.

    Example:
        builder = FrameBuilder()
        builder.write_command(CMD_PROGRAM, len(chunk), arg1, arg2)
        builder.extend(chunk)
        frame = builder.finish()

    ``finish()`` resets the accumulator; a frame left unfinished must be
    dropped with ``reset()`` before the next ``write_command()``.
    """

    def __init__(self) -> None:
        self._buf = bytearray()
        self._check = 0

    @property
    def checksum(self) -> int:
        return self._check

    def __len__(self) -> int:
        return len(self._buf)

    def write_command(self, cmd: int, length: int, arg1: int, arg2: int) -> None:
        if self._buf:
            raise FrameError("previous frame was not finished")
        for name, value in (("cmd", cmd), ("length", length), ("arg1", arg1), ("arg2", arg2)):
            _check_u8(name, value)
        self._buf.extend(SYNC_HEADER)
        self.append(cmd)
        self.append(length)
        self.append(arg1)
        self.append(arg2)

    def append(self, byte: int) -> None:
        _check_u8("byte", byte)
        self._buf.append(byte)
        self._check = (self._check + byte) & 0xFF

    def extend(self, data: Iterable[int]) -> None:
        for byte in data:
            self.append(byte)

    def finish(self) -> bytes:
        if len(self._buf) < HEADER_SIZE:
            raise FrameError("no command header written")
        if len(self._buf) - HEADER_SIZE > CHUNK_SIZE:
            raise FrameError(
                f"payload too large: {len(self._buf) - HEADER_SIZE} bytes (max {CHUNK_SIZE})"
            )
        self._buf.append(self._check)
        frame = bytes(self._buf)
        self.reset()
        return frame

    def reset(self) -> None:
        self._buf.clear()
        self._check = 0


def build_frame(cmd: int, length: int, arg1: int, arg2: int, payload: bytes = b"") -> bytes:
    """Build one complete frame in a single call."""
    builder = FrameBuilder()
    builder.write_command(cmd, length, arg1, arg2)
    builder.extend(payload)
    return builder.finish()


@dataclass(frozen=True)
class CommandFrame:
    """Decoded view of a single frame."""

    command: int
    length: int
    arg1: int = 0
    arg2: int = 0
    payload: bytes = b""

    @property
    def name(self) -> str:
        return COMMAND_NAMES.get(self.command, f"0x{self.command:02X}")

    @property
    def address(self) -> int:
        return self.arg1 | (self.arg2 << 8)

    @property
    def checksum(self) -> int:
        return checksum(bytes([self.command, self.length, self.arg1, self.arg2]) + self.payload)

    def to_bytes(self) -> bytes:
        return build_frame(self.command, self.length, self.arg1, self.arg2, self.payload)

    @classmethod
    def parse(cls, raw: bytes) -> "CommandFrame":
        """
        Parse a raw frame and validate sync bytes and checksum.

        Program/Verify frames carry ``length`` payload bytes. Erase/End
        declare a length but carry none, so the payload is whatever sits
        between the header and the trailing checksum.
        """
        if len(raw) < HEADER_SIZE + 1:
            raise FrameError(f"frame too short: {len(raw)} bytes")
        if bytes(raw[:2]) != SYNC_HEADER:
            raise FrameError(f"bad sync bytes: {raw[:2].hex()}")
        cmd, length, arg1, arg2 = raw[2:HEADER_SIZE]
        payload = bytes(raw[HEADER_SIZE:-1])
        if cmd in (CMD_PROGRAM, CMD_VERIFY) and len(payload) != length:
            raise FrameError(
                f"declared length {length} does not match payload of {len(payload)} bytes"
            )
        frame = cls(command=cmd, length=length, arg1=arg1, arg2=arg2, payload=payload)
        if frame.checksum != raw[-1]:
            raise FrameError(
                f"checksum mismatch: got 0x{raw[-1]:02X}, want 0x{frame.checksum:02X}"
            )
        return frame


def iter_chunks(image: bytes, chunk_size: int = CHUNK_SIZE) -> Iterator[Tuple[int, bytes]]:
    """Yield (offset, chunk) pairs; the final chunk may be short."""
    for offset in range(0, len(image), chunk_size):
        yield offset, image[offset:offset + chunk_size]


def data_frame(cmd: int, offset: int, chunk: bytes) -> CommandFrame:
    arg1, arg2 = split_address(offset)
    return CommandFrame(command=cmd, length=len(chunk), arg1=arg1, arg2=arg2, payload=bytes(chunk))


def control_frame(cmd: int) -> CommandFrame:
    return CommandFrame(command=cmd, length=CONTROL_LENGTH)


def plan_frames(image: bytes) -> List[CommandFrame]:
    """Every frame a complete session sends for ``image``, in order."""
    frames = [control_frame(CMD_ERASE)]
    for cmd in (CMD_PROGRAM, CMD_VERIFY):
        frames.extend(data_frame(cmd, offset, chunk) for offset, chunk in iter_chunks(image))
    frames.append(control_frame(CMD_END))
    return frames
