"""Tests for deadline-bounded transport reads and writes."""

import time

import pytest
import serial

from ch32_uart_flasher.protocol.errors import (
    DeviceRejected,
    MalformedAcknowledgment,
    ShortWrite,
    TransportError,
    TransportTimeout,
)
from ch32_uart_flasher.protocol.transport import TransportGuard

from conftest import FakeUart


class ShortUart(FakeUart):
    def __init__(self, accepted):
        super().__init__()
        self.accepted = accepted

    def write(self, data):
        super().write(data)
        return self.accepted


class TestWrite:
    def test_full_write_succeeds(self, fake_uart):
        TransportGuard(fake_uart).write(b"\x57\xAB\x81\x02\x00\x00\x83")
        assert fake_uart.writes == [b"\x57\xAB\x81\x02\x00\x00\x83"]

    def test_short_write_reported(self):
        with pytest.raises(ShortWrite) as ei:
            TransportGuard(ShortUart(3)).write(b"\x00" * 7)
        assert ei.value.written == 3
        assert ei.value.expected == 7

    def test_write_returning_none_is_short(self):
        with pytest.raises(ShortWrite):
            TransportGuard(ShortUart(None)).write(b"\x00")

    def test_serial_write_timeout_maps_to_timeout(self):
        class TimeoutUart(FakeUart):
            def write(self, data):
                raise serial.SerialTimeoutException("Write timeout")

        with pytest.raises(TransportTimeout) as ei:
            TransportGuard(TimeoutUart()).write(b"\x00")
        assert ei.value.operation == "write"

    def test_serial_fault_maps_to_transport_error(self):
        class BrokenUart(FakeUart):
            def write(self, data):
                raise serial.SerialException("device disconnected")

        with pytest.raises(TransportError) as ei:
            TransportGuard(BrokenUart()).write(b"\x00")
        assert isinstance(ei.value.__cause__, serial.SerialException)


class TestRead:
    def test_success_ack(self):
        guard = TransportGuard(FakeUart(acks=[b"\x00\x07"]))
        assert guard.read_ack() == b"\x00\x07"

    def test_reads_exactly_two_bytes(self, fake_uart):
        TransportGuard(fake_uart).read_ack()
        assert fake_uart.read_sizes == [2]

    def test_nonzero_status_rejected(self):
        with pytest.raises(DeviceRejected) as ei:
            TransportGuard(FakeUart(acks=[b"\x01\x00"])).read_ack()
        assert ei.value.status == 0x01

    def test_single_byte_is_malformed(self):
        with pytest.raises(MalformedAcknowledgment) as ei:
            TransportGuard(FakeUart(acks=[b"\x00"])).read_ack()
        assert ei.value.received == b"\x00"

    def test_empty_read_is_closed_stream(self):
        with pytest.raises(TransportError, match="closed"):
            TransportGuard(FakeUart(acks=[b""])).read_ack()

    def test_eof_is_transport_error(self):
        with pytest.raises(TransportError, match="closed"):
            TransportGuard(FakeUart(acks=[EOFError("eof")])).read_ack()

    def test_os_error_is_transport_error(self):
        with pytest.raises(TransportError) as ei:
            TransportGuard(FakeUart(acks=[OSError(5, "I/O error")])).read_ack()
        assert isinstance(ei.value.__cause__, OSError)


class TestDeadline:
    def test_silent_device_times_out_without_hanging(self, stalling_uart):
        """A read that never returns yields TransportTimeout near the deadline."""
        uart = stalling_uart()
        guard = TransportGuard(uart, deadline=0.05)

        start = time.monotonic()
        with pytest.raises(TransportTimeout) as ei:
            guard.read_ack()
        elapsed = time.monotonic() - start

        assert ei.value.operation == "read"
        assert elapsed < 0.5

    def test_late_result_is_never_observed(self, stalling_uart):
        """The abandoned read's late ack must not answer the next call."""
        uart = stalling_uart(answer_reads=0, late_ack=b"\x00\x00")
        guard = TransportGuard(uart, deadline=0.05)

        with pytest.raises(TransportTimeout):
            guard.read_ack()

        # Straggler finishes with a success ack; the next read gets a reject.
        uart.answer_reads = 2
        uart.acks = [b"\x09\x00"]
        uart.release()

        with pytest.raises(DeviceRejected) as ei:
            guard.read_ack()
        assert ei.value.status == 0x09
        assert uart.drained == 1

    def test_busy_straggler_blocks_next_call(self, stalling_uart):
        uart = stalling_uart()
        guard = TransportGuard(uart, deadline=0.05)

        with pytest.raises(TransportTimeout):
            guard.read_ack()
        with pytest.raises(TransportError, match="busy"):
            guard.write(b"\x00")
        assert uart.writes == []

    def test_deadline_must_be_positive(self, fake_uart):
        with pytest.raises(ValueError):
            TransportGuard(fake_uart, deadline=0)

    def test_stalled_write_times_out_without_hanging(self, stalling_uart):
        """A write the adapter never accepts yields TransportTimeout."""
        uart = stalling_uart(stall_writes=True)
        guard = TransportGuard(uart, deadline=0.05)

        start = time.monotonic()
        with pytest.raises(TransportTimeout) as ei:
            guard.write(b"\x57\xAB\x81\x02\x00\x00\x83")
        elapsed = time.monotonic() - start

        assert ei.value.operation == "write"
        assert elapsed < 0.5
        assert uart.stalled == 1

    def test_expired_serial_port_read_is_timeout(self, silent_port):
        """pyserial hands back no bytes when its own timeout runs out first."""
        guard = TransportGuard(silent_port, deadline=1.0)

        with pytest.raises(TransportTimeout) as ei:
            guard.read_ack()
        assert ei.value.operation == "read"
