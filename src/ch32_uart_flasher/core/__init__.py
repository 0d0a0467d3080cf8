"""
Core module for the CH32V003 UART flasher.

This module provides:
- Result objects (results.py)
- Flash and frame-dump workflows (actions.py)
- Standardized failure messages (messages.py)

The CLI calls into this module rather than driving the protocol directly.
"""

from .results import OperationResult
from .messages import (
    MessageLevel,
    MessageCode,
    MessageItem,
    result_to_messages,
)
from .actions import flash_firmware, dump_frames

__all__ = [
    # Results
    "OperationResult",
    # Messages
    "MessageLevel",
    "MessageCode",
    "MessageItem",
    "result_to_messages",
    # Actions
    "flash_firmware",
    "dump_frames",
]
