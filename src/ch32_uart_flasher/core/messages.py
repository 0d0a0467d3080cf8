"""
Standardized failure messages for the flasher CLI.

Maps each error kind to a stable code and a remediation hint.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Any


class MessageLevel(Enum):
    """Severity level for messages."""
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


class MessageCode(Enum):
    """Stable codes for known failure conditions."""
    E_OVERSIZED_IMAGE = "E_OVERSIZED_IMAGE"
    E_TRANSPORT_TIMEOUT = "E_TRANSPORT_TIMEOUT"
    E_TRANSPORT_ERROR = "E_TRANSPORT_ERROR"
    E_MALFORMED_ACK = "E_MALFORMED_ACK"
    E_DEVICE_REJECTED = "E_DEVICE_REJECTED"
    E_SHORT_WRITE = "E_SHORT_WRITE"
    E_FIRMWARE_LOAD = "E_FIRMWARE_LOAD"
    E_CANCELLED = "E_CANCELLED"
    W_DRY_RUN = "W_DRY_RUN"
    E_UNKNOWN = "E_UNKNOWN"


# error kind (FlasherError.kind) -> code
KIND_CODES: Dict[str, MessageCode] = {
    "oversized_image": MessageCode.E_OVERSIZED_IMAGE,
    "transport_timeout": MessageCode.E_TRANSPORT_TIMEOUT,
    "transport_error": MessageCode.E_TRANSPORT_ERROR,
    "malformed_ack": MessageCode.E_MALFORMED_ACK,
    "device_rejected": MessageCode.E_DEVICE_REJECTED,
    "short_write": MessageCode.E_SHORT_WRITE,
    "firmware_load_error": MessageCode.E_FIRMWARE_LOAD,
    "cancelled": MessageCode.E_CANCELLED,
}

REMEDIATIONS: Dict[MessageCode, str] = {
    MessageCode.E_OVERSIZED_IMAGE:
        "The CH32V003 holds 16 KiB of flash. Rebuild the firmware smaller.",
    MessageCode.E_TRANSPORT_TIMEOUT:
        "Check TX/RX wiring and that the chip is in bootloader mode, then retry.",
    MessageCode.E_TRANSPORT_ERROR:
        "Close other serial apps and check the USB-UART adapter and driver.",
    MessageCode.E_MALFORMED_ACK:
        "The reply was cut short. Check baud rate and cable quality.",
    MessageCode.E_DEVICE_REJECTED:
        "The bootloader refused the command. Reset the chip into bootloader mode and flash again.",
    MessageCode.E_SHORT_WRITE:
        "The adapter did not accept the whole frame. Reconnect it and retry.",
    MessageCode.E_FIRMWARE_LOAD:
        "Check the firmware path and file permissions.",
    MessageCode.E_CANCELLED:
        "Flashing stopped part way. Run the flash again from the start.",
    MessageCode.W_DRY_RUN:
        "Nothing was sent. Remove --dry-run to flash.",
    MessageCode.E_UNKNOWN:
        "Re-run with --debug for wire-level logs.",
}


@dataclass
class MessageItem:
    """
    Structured message with stable code.

    Attributes:
        level: Severity (INFO, WARN, ERROR)
        code: Stable code for programmatic handling
        title: Short, user-facing title
        remediation: Suggested action to resolve the issue
    """
    level: MessageLevel
    code: MessageCode
    title: str
    remediation: str = ""

    def __post_init__(self):
        if not self.remediation:
            self.remediation = REMEDIATIONS.get(self.code, "")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "level": self.level.value,
            "code": self.code.value,
            "title": self.title,
            "remediation": self.remediation,
        }


def _code_for(value: str) -> MessageCode:
    try:
        return MessageCode(value)
    except ValueError:
        return MessageCode.E_UNKNOWN


def result_to_messages(result) -> List[MessageItem]:
    """Convert an OperationResult's warnings and errors to MessageItems."""
    items = []

    codes = list(result.warning_codes) + [""] * (len(result.warnings) - len(result.warning_codes))
    for warning, value in zip(result.warnings, codes):
        code = _code_for(value)
        items.append(MessageItem(MessageLevel.WARN, code, warning))

    code = KIND_CODES.get(result.error_kind, MessageCode.E_UNKNOWN)
    for err in result.errors:
        items.append(MessageItem(MessageLevel.ERROR, code, err))

    return items
