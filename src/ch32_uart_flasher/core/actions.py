"""
Core workflow actions for the CH32V003 UART flasher.

These wrap the protocol engine for the CLI: they open and close the UART,
turn protocol exceptions into a single ``OperationResult``, and capture log
lines for display.
"""

import json
import logging
import threading
from contextlib import contextmanager, nullcontext
from pathlib import Path
from typing import Optional

from ch32_uart_flasher.firmware import FileFirmware, check_firmware_size, firmware_sha256
from ch32_uart_flasher.protocol.constants import CHUNK_SIZE, DEADLINE, DEFAULT_BAUDRATE
from ch32_uart_flasher.protocol.errors import FlasherError
from ch32_uart_flasher.protocol.frame import plan_frames
from ch32_uart_flasher.protocol.sequencer import Flasher, ProgressCallback
from ch32_uart_flasher.protocol.transport import Transport
from ch32_uart_flasher.serial_port import uart_session

from .messages import MessageCode
from .results import OperationResult

logger = logging.getLogger(__name__)


class _ListLogHandler(logging.Handler):
    """Capture log records into a list of formatted strings."""

    def __init__(self, level: int = logging.INFO) -> None:
        super().__init__(level)
        self.records = []
        self.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(self.format(record))


@contextmanager
def _capture_logs(logger_name: str = "ch32_uart_flasher"):
    """Capture logs for core operations into a list."""
    target_logger = logging.getLogger(logger_name)
    handler = _ListLogHandler()
    previous_level = target_logger.level
    if previous_level in (logging.NOTSET, logging.WARNING, logging.ERROR, logging.CRITICAL):
        target_logger.setLevel(logging.INFO)
    target_logger.addHandler(handler)
    try:
        yield handler.records
    finally:
        target_logger.removeHandler(handler)
        target_logger.setLevel(previous_level)


def _failure(operation: str, exc: FlasherError, device: str = "", **kwargs) -> OperationResult:
    return OperationResult.failure(
        operation=operation,
        error=str(exc),
        device=device,
        phase=exc.phase or "",
        error_kind=exc.kind,
        **kwargs,
    )


def _frame_counts(image: bytes) -> dict:
    frames = plan_frames(image)
    data_frames = sum(1 for f in frames if f.payload)
    return {
        "frames_total": len(frames),
        "program_frames": data_frames // 2,
        "verify_frames": data_frames // 2,
        "chunk_size": CHUNK_SIZE,
    }


def flash_firmware(
    device: str,
    firmware_path: str,
    *,
    baudrate: int = DEFAULT_BAUDRATE,
    dry_run: bool = False,
    progress_cb: Optional[ProgressCallback] = None,
    transport: Optional[Transport] = None,
    deadline: float = DEADLINE,
    cancel_event: Optional[threading.Event] = None,
) -> OperationResult:
    """
    Flash a raw binary image: erase, write, verify, end.

    Args:
        device: Serial device (e.g., /dev/ttyUSB0, COM10)
        firmware_path: Path to the raw .bin image
        baudrate: UART baud rate
        dry_run: Validate the image and plan frames without opening the port
        progress_cb: Optional callback(phase, bytes_done, bytes_total)
        transport: Already open transport to use instead of opening ``device``
        deadline: Per-operation deadline in seconds
        cancel_event: Set to stop the session before its next command

    Returns:
        OperationResult describing the single terminal outcome
    """
    operation = "flash"
    source = FileFirmware(firmware_path)

    with _capture_logs() as logs:
        try:
            image = source.load()
            check_firmware_size(len(image))
        except FlasherError as exc:
            result = _failure(operation, exc, device)
            result.logs = logs
            return result

        hashes = {"sha256": firmware_sha256(image)}
        metadata = {"firmware": str(source.path), "baudrate": baudrate, **_frame_counts(image)}

        if dry_run:
            result = OperationResult.success(
                operation=operation,
                device=device,
                bytes_len=len(image),
                hashes=hashes,
                metadata=metadata,
            )
            result.metadata["dry_run"] = True
            result.add_warning(
                "Dry run: no data sent to the device",
                code=MessageCode.W_DRY_RUN.value,
            )
            result.logs = logs
            return result

        try:
            if transport is not None:
                port_ctx = nullcontext(transport)
            else:
                port_ctx = uart_session(device, baudrate, deadline=deadline)
            with port_ctx as uart:
                flasher = Flasher(
                    uart,
                    source,
                    deadline=deadline,
                    progress_cb=progress_cb,
                    cancel_event=cancel_event,
                )
                session = flasher.run()
        except FlasherError as exc:
            result = _failure(operation, exc, device, bytes_len=len(image), hashes=hashes, metadata=metadata)
            result.logs = logs
            return result

        metadata["frames_sent"] = session.frames_sent
        metadata["acks_received"] = session.acks_received
        result = OperationResult.success(
            operation=operation,
            device=device,
            bytes_len=session.image_size,
            hashes=hashes,
            metadata=metadata,
        )
        result.logs = logs
        return result


def dump_frames(firmware_path: str, output_path: str) -> OperationResult:
    """
    Write the complete wire stream of a session to ``output_path``.

    A ``.json`` manifest with frame offsets and hashes is written next to it.
    """
    operation = "dump_frames"
    source = FileFirmware(firmware_path)
    try:
        image = source.load()
        check_firmware_size(len(image))
    except FlasherError as exc:
        return _failure(operation, exc)

    frames = plan_frames(image)
    stream = b"".join(frame.to_bytes() for frame in frames)

    out_path = Path(output_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_bytes(stream)

    manifest = {
        "firmware": str(source.path),
        "image_bytes": len(image),
        "image_sha256": firmware_sha256(image),
        "stream_bytes": len(stream),
        "frames": [
            {
                "command": frame.name,
                "length": frame.length,
                "address": frame.address,
                "checksum": frame.checksum,
            }
            for frame in frames
        ],
    }
    manifest_path = out_path.with_suffix(".json")
    manifest_path.write_text(json.dumps(manifest, indent=2), encoding="utf-8")
    logger.info("Wrote %d frames to %s", len(frames), out_path)

    result = OperationResult.success(
        operation=operation,
        bytes_len=len(image),
        hashes={"sha256": manifest["image_sha256"]},
        metadata={
            "output": str(out_path),
            "manifest": str(manifest_path),
            **_frame_counts(image),
        },
    )
    return result
