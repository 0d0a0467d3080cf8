"""
CH32V003 UART Flasher - write raw firmware through the factory UART bootloader

Erase, program, verify and end over a framed serial protocol.
"""

__version__ = "0.1.0"

from ch32_uart_flasher.protocol import Flasher, FlashSession, TransportGuard, program
from ch32_uart_flasher.firmware import FileFirmware, BufferFirmware

__all__ = [
    "Flasher",
    "FlashSession",
    "TransportGuard",
    "program",
    "FileFirmware",
    "BufferFirmware",
    "__version__",
]
