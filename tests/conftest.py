"""Shared fakes for protocol tests: scripted UARTs, no serial hardware."""

import threading
from typing import List

import pytest
from serial.urlhandler.protocol_loop import Serial as LoopSerial

from ch32_uart_flasher.protocol.frame import CommandFrame

ACK_OK = b"\x00\x00"


class FakeUart:
    """
    Records every write and answers reads from a script.

    Each scripted entry is either bytes to return or an exception to raise.
    Once the script runs out every read returns ``default_ack``.
    """

    def __init__(self, acks=None, default_ack: bytes = ACK_OK):
        self.writes: List[bytes] = []
        self.read_sizes: List[int] = []
        self.acks = list(acks or [])
        self.default_ack = default_ack
        self.drained = 0

    def write(self, data: bytes) -> int:
        self.writes.append(bytes(data))
        return len(data)

    def read(self, size: int) -> bytes:
        self.read_sizes.append(size)
        ack = self.acks.pop(0) if self.acks else self.default_ack
        if isinstance(ack, BaseException):
            raise ack
        return ack

    def reset_input_buffer(self) -> None:
        self.drained += 1

    @property
    def reads(self) -> int:
        return len(self.read_sizes)

    @property
    def frames(self) -> List[CommandFrame]:
        return [CommandFrame.parse(raw) for raw in self.writes]

    def commands(self) -> List[str]:
        return [frame.name for frame in self.frames]


class StallingUart(FakeUart):
    """
    Answers the first ``answer_reads`` reads, then blocks every later read
    until ``release()`` and returns ``late_ack``.

    With ``stall_writes`` every write blocks on the same gate instead.
    """

    def __init__(
        self,
        answer_reads: int = 0,
        late_ack: bytes = ACK_OK,
        stall_writes: bool = False,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.answer_reads = answer_reads
        self.late_ack = late_ack
        self.stall_writes = stall_writes
        self.gate = threading.Event()
        self.stalled = 0

    def write(self, data: bytes) -> int:
        if self.stall_writes:
            self.stalled += 1
            self.gate.wait()
        return super().write(data)

    def read(self, size: int) -> bytes:
        if self.reads < self.answer_reads:
            return super().read(size)
        self.read_sizes.append(size)
        self.stalled += 1
        self.gate.wait()
        return self.late_ack

    def release(self) -> None:
        self.gate.set()


@pytest.fixture
def fake_uart():
    return FakeUart()


@pytest.fixture
def stalling_uart():
    created = []

    def make(**kwargs) -> StallingUart:
        uart = StallingUart(**kwargs)
        created.append(uart)
        return uart

    yield make
    # let abandoned worker threads finish
    for uart in created:
        uart.release()


class SilentPort(LoopSerial):
    """pyserial loop:// port that swallows writes and never answers."""

    def write(self, data) -> int:
        return len(data)


@pytest.fixture
def silent_port():
    port = SilentPort("loop://", timeout=0.05)
    yield port
    port.close()
