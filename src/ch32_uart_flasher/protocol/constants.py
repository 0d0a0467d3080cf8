"""
CH32V003 UART bootloader protocol constants.

Frame format (all single bytes):
    [ 0x57 | 0xAB | cmd | len | arg1 | arg2 | payload (0..60) | checksum ]

The checksum is the 8-bit wrapping sum of cmd, len, arg1, arg2 and every
payload byte. Sync bytes are not included.
"""

SYNC_HEAD1 = 0x57
SYNC_HEAD2 = 0xAB
SYNC_HEADER = bytes([SYNC_HEAD1, SYNC_HEAD2])

# Commands
CMD_PROGRAM = 0x80
CMD_ERASE = 0x81
CMD_VERIFY = 0x82
CMD_END = 0x83

COMMAND_NAMES = {
    CMD_PROGRAM: "PROGRAM",
    CMD_ERASE: "ERASE",
    CMD_VERIFY: "VERIFY",
    CMD_END: "END",
}

# Erase and End carry no payload but still declare this length.
CONTROL_LENGTH = 2

# Acknowledgment: [status, reserved]
ACK_LENGTH = 2
RES_SUCCESS = 0x00

# Limits
CHUNK_SIZE = 0x3C  # 60 bytes of payload per frame
MAX_FIRMWARE_SIZE = 16 * 1024
HEADER_SIZE = 6  # sync1, sync2, cmd, len, arg1, arg2
MAX_FRAME_SIZE = HEADER_SIZE + CHUNK_SIZE + 1

# Timing
DEADLINE = 1.0  # seconds per single write or read

DEFAULT_BAUDRATE = 115200
