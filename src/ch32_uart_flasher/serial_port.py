"""
Serial port handling for the flasher CLI.

Opens the UART the protocol engine borrows. Device discovery and baud
negotiation are out of scope: the device path and baud rate come from the
user.
"""

import logging
import sys
from contextlib import contextmanager
from typing import Iterator, Optional

import serial

from ch32_uart_flasher.protocol.constants import DEADLINE, DEFAULT_BAUDRATE
from ch32_uart_flasher.protocol.errors import TransportError

logger = logging.getLogger(__name__)

# The port's own timeouts sit past the protocol deadline so the guard's
# deadline always fires first and an abandoned call still returns soon after.
PORT_TIMEOUT_FACTOR = 1.5
PORT_TIMEOUT = DEADLINE * PORT_TIMEOUT_FACTOR


def port_timeout(deadline: float = DEADLINE) -> float:
    return deadline * PORT_TIMEOUT_FACTOR


def normalize_device(device: str, platform: Optional[str] = None) -> str:
    """Windows needs COM10 and above spelled as \\\\.\\COM10."""
    platform = platform or sys.platform
    if platform.startswith("win") and device.upper().startswith("COM"):
        return "\\\\.\\" + device
    return device


def open_uart(
    device: str,
    baudrate: int = DEFAULT_BAUDRATE,
    timeout: float = PORT_TIMEOUT,
) -> serial.Serial:
    """
    Open the bootloader UART (8N1, no flow control).

    Raises:
        TransportError: If the port cannot be opened
    """
    address = normalize_device(device)
    try:
        uart = serial.Serial(
            port=address,
            baudrate=baudrate,
            bytesize=8,
            parity="N",
            stopbits=1,
            timeout=timeout,
            write_timeout=timeout,
            rtscts=False,
            dsrdtr=False,
        )
    except (serial.SerialException, ValueError) as e:
        raise TransportError(f"cannot open port {device}: {e}") from e

    # Clear any junk left from a previous session
    try:
        uart.reset_input_buffer()
        uart.reset_output_buffer()
    except (serial.SerialException, ValueError) as e:
        uart.close()
        raise TransportError(f"cannot reset port {device}: {e}") from e
    logger.debug(f"Opened {address} at {baudrate} bps (timeout={timeout}s)")
    return uart


@contextmanager
def uart_session(
    device: str,
    baudrate: int = DEFAULT_BAUDRATE,
    deadline: float = DEADLINE,
) -> Iterator[serial.Serial]:
    """
    Open the UART for one flashing run and always close it.

    The port timeout follows ``deadline`` so a silent device is reported by
    the deadline guard, not by an empty read.
    """
    uart = open_uart(device, baudrate, timeout=port_timeout(deadline))
    try:
        yield uart
    finally:
        if uart.is_open:
            uart.close()
            logger.debug(f"Closed {device}")
