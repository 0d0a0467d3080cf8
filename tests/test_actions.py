"""Tests for core flash workflows and result objects."""

import json
from contextlib import contextmanager

import pytest

from ch32_uart_flasher import serial_port
from ch32_uart_flasher.core import actions
from ch32_uart_flasher.core.messages import MessageCode, result_to_messages
from ch32_uart_flasher.core.results import OperationResult
from ch32_uart_flasher.protocol.constants import MAX_FIRMWARE_SIZE

from conftest import FakeUart


@pytest.fixture
def firmware_file(tmp_path):
    path = tmp_path / "blink.bin"
    path.write_bytes(bytes(range(100)))
    return path


@pytest.fixture
def no_port(monkeypatch):
    @contextmanager
    def refuse(device, baudrate, deadline=None):
        raise AssertionError("serial port must not be opened")
        yield

    monkeypatch.setattr(actions, "uart_session", refuse)


def test_flash_success_with_given_transport(firmware_file, fake_uart) -> None:
    result = actions.flash_firmware("/dev/ttyUSB0", str(firmware_file), transport=fake_uart)

    assert result.ok
    assert result.bytes_len == 100
    assert result.metadata["frames_sent"] == 6
    assert result.metadata["acks_received"] == 5
    assert len(result.hashes["sha256"]) == 64
    assert any("Erase" in line for line in result.logs)


def test_flash_opens_and_uses_uart_session(monkeypatch, firmware_file) -> None:
    uart = FakeUart()
    calls = []

    @contextmanager
    def fake_session(device, baudrate, deadline=None):
        calls.append((device, baudrate, deadline))
        yield uart

    monkeypatch.setattr(actions, "uart_session", fake_session)
    result = actions.flash_firmware("COM4", str(firmware_file), baudrate=460800, deadline=2.0)

    assert result.ok
    assert calls == [("COM4", 460800, 2.0)]
    assert uart.commands()[-1] == "END"


def test_flash_failure_tagged_with_phase(firmware_file) -> None:
    uart = FakeUart(acks=[b"\x00\x00", b"\x03\x00"])
    result = actions.flash_firmware("/dev/ttyUSB0", str(firmware_file), transport=uart)

    assert not result.ok
    assert result.phase == "write"
    assert result.error_kind == "device_rejected"
    assert result.errors[0].startswith("write error:")


def test_silent_serial_port_is_timeout(firmware_file, silent_port) -> None:
    result = actions.flash_firmware("loop://", str(firmware_file), transport=silent_port, deadline=1.0)

    assert not result.ok
    assert result.error_kind == "transport_timeout"
    assert result.phase == "erase"


def test_open_failure_is_failure_result(monkeypatch, firmware_file) -> None:
    def bad_baud(**kwargs):
        raise ValueError("Not a valid baudrate: -5")

    monkeypatch.setattr(serial_port.serial, "Serial", bad_baud)
    result = actions.flash_firmware("/dev/ttyUSB0", str(firmware_file), baudrate=-5)

    assert not result.ok
    assert result.error_kind == "transport_error"
    assert "Not a valid baudrate" in result.errors[0]


def test_dry_run_never_opens_port(firmware_file, no_port) -> None:
    result = actions.flash_firmware("/dev/ttyUSB0", str(firmware_file), dry_run=True)

    assert result.ok
    assert result.metadata["dry_run"] is True
    assert result.metadata["program_frames"] == 2
    assert result.metadata["frames_total"] == 6
    assert result.warning_codes == [MessageCode.W_DRY_RUN.value]


def test_missing_firmware_is_failure(tmp_path, no_port) -> None:
    result = actions.flash_firmware("/dev/ttyUSB0", str(tmp_path / "nope.bin"))
    assert not result.ok
    assert result.error_kind == "firmware_load_error"


def test_oversized_firmware_is_failure(tmp_path, no_port) -> None:
    path = tmp_path / "big.bin"
    path.write_bytes(bytes(MAX_FIRMWARE_SIZE + 1))
    result = actions.flash_firmware("/dev/ttyUSB0", str(path))
    assert not result.ok
    assert result.error_kind == "oversized_image"
    assert result.phase == ""


def test_dump_frames_writes_stream_and_manifest(tmp_path, firmware_file) -> None:
    out = tmp_path / "out" / "frames.bin"
    result = actions.dump_frames(str(firmware_file), str(out))

    assert result.ok
    stream = out.read_bytes()
    # erase 7 + program (67 + 47) + verify (67 + 47) + end 7
    assert len(stream) == 7 + 67 + 47 + 67 + 47 + 7
    assert stream[:7] == bytes([0x57, 0xAB, 0x81, 0x02, 0x00, 0x00, 0x83])

    manifest = json.loads(out.with_suffix(".json").read_text(encoding="utf-8"))
    assert manifest["image_bytes"] == 100
    assert [f["command"] for f in manifest["frames"]] == [
        "ERASE", "PROGRAM", "PROGRAM", "VERIFY", "VERIFY", "END",
    ]


class TestOperationResult:
    def test_failure_summary(self):
        result = OperationResult.failure(
            "flash", "verify error: response status is not success: 0x02",
            device="/dev/ttyUSB0", phase="verify", error_kind="device_rejected",
        )
        summary = result.to_summary()
        assert summary.startswith("[FAILED] flash")
        assert "Phase: verify" in summary
        assert result.to_dict()["error_kind"] == "device_rejected"

    def test_add_error_marks_failed(self):
        result = OperationResult.success("flash")
        result.add_error("boom")
        assert not result.ok

    def test_warning_code_stored_with_warning(self):
        result = OperationResult.success("flash")
        result.add_warning("Dry run: no data sent to the device", code="W_DRY_RUN")
        result.add_warning("mentions a dry run but has no code")

        items = result_to_messages(result)
        assert [item.code for item in items] == [MessageCode.W_DRY_RUN, MessageCode.E_UNKNOWN]
        assert result.to_dict()["warning_codes"] == ["W_DRY_RUN", ""]

    def test_messages_carry_remediation(self):
        result = OperationResult.failure("flash", "read timeout", error_kind="transport_timeout")
        items = result_to_messages(result)
        assert items[0].code is MessageCode.E_TRANSPORT_TIMEOUT
        assert "wiring" in items[0].remediation
