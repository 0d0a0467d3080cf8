"""
CH32V003 UART Flasher CLI

Flash raw firmware images through the CH32V003 factory UART bootloader.
"""

import sys
import json
import logging
from typing import Dict, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.logging import RichHandler
from rich.progress import Progress, BarColumn, TextColumn

from ch32_uart_flasher import __version__
from ch32_uart_flasher.core.actions import (
    flash_firmware as core_flash_firmware,
    dump_frames as core_dump_frames,
)
from ch32_uart_flasher.core.messages import MessageItem, MessageLevel, result_to_messages
from ch32_uart_flasher.core.results import OperationResult
from ch32_uart_flasher.firmware import FileFirmware, check_firmware_size
from ch32_uart_flasher.protocol.constants import DEFAULT_BAUDRATE
from ch32_uart_flasher.protocol.errors import FlasherError
from ch32_uart_flasher.protocol.frame import plan_frames

# Setup Rich console
console = Console()
err_console = Console(stderr=True)

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format="%(message)s",
    handlers=[RichHandler(console=err_console, rich_tracebacks=True, show_path=False)],
)
logger = logging.getLogger("ch32_uart_flasher")

app = typer.Typer(help="CH32V003 UART Flasher - erase, write and verify firmware over the UART bootloader")


def print_header(text: str) -> None:
    """Print fancy header."""
    console.print(Panel(text, expand=False, style="bold blue"))


def print_success(text: str) -> None:
    """Print success message."""
    console.print(f"✓ {text}", style="green")


def print_warning(text: str) -> None:
    """Print warning message."""
    console.print(f"⚠️  {text}", style="yellow")


def print_error(text: str) -> None:
    """Print error message."""
    console.print(f"❌ {text}", style="red")


def print_message(item: MessageItem, verbose: bool = True) -> None:
    """Print a structured message with its remediation hint."""
    if item.level == MessageLevel.ERROR:
        print_error(f"[{item.code.value}] {item.title}")
    else:
        print_warning(item.title)
    if verbose and item.remediation:
        console.print(f"   → {item.remediation}", style="cyan")


def print_result(result: OperationResult) -> None:
    """Print a result table followed by warnings and errors."""
    table = Table(title="Flash Result" if result.operation == "flash" else "Result")
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="green")

    if result.device:
        table.add_row("Device", result.device)
    table.add_row("Firmware", f"{result.bytes_len:,} bytes")
    for name, value in result.hashes.items():
        table.add_row(name.upper(), value[:16] + "...")
    for key in ("program_frames", "verify_frames", "frames_sent", "acks_received"):
        if key in result.metadata:
            table.add_row(key.replace("_", " ").capitalize(), str(result.metadata[key]))
    if result.phase:
        table.add_row("Failed phase", result.phase)

    console.print(table)
    for item in result_to_messages(result):
        print_message(item)


def _version_callback(value: bool) -> None:
    if value:
        console.print(__version__)
        raise typer.Exit()


@app.callback()
def main_options(
    version: Optional[bool] = typer.Option(
        None, "--version", "-v", help="Show version and exit", callback=_version_callback, is_eager=True
    ),
    debug: bool = typer.Option(False, "--debug", help="Log every frame sent and received"),
) -> None:
    """CH32V003 UART Flasher."""
    if debug:
        logger.setLevel(logging.DEBUG)


@app.command()
def flash(
    firmware: str = typer.Argument(..., help="Firmware path, raw binary (firmware.bin)"),
    device: str = typer.Option(..., "--device", "-d", help="Device such as /dev/ttyUSB0, COM10"),
    baud: int = typer.Option(DEFAULT_BAUDRATE, "--baud", "-b", help="Baud rate such as 115200, 460800"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Validate the image and plan frames, send nothing"),
    output_json: bool = typer.Option(False, "--json", "-j", help="Output result as JSON for scripting"),
) -> None:
    """Erase, write, verify and start FIRMWARE on the device."""
    if output_json:
        result = core_flash_firmware(device, firmware, baudrate=baud, dry_run=dry_run)
        print(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.ok else 1)

    print_header("Flash Firmware")
    console.print(f"Device: {device} @ {baud} bps")
    console.print(f"Firmware: {firmware}")

    with Progress(
        TextColumn("[{task.description}]"),
        BarColumn(),
        TextColumn("[{task.percentage:.0f}%]"),
        console=console,
    ) as progress:
        tasks: Dict[str, int] = {}

        def on_progress(phase: str, done: int, total: int) -> None:
            if phase not in tasks:
                tasks[phase] = progress.add_task(f"{phase.capitalize()}...", total=total)
            progress.update(tasks[phase], completed=done)

        result = core_flash_firmware(
            device,
            firmware,
            baudrate=baud,
            dry_run=dry_run,
            progress_cb=on_progress,
        )

    print_result(result)
    if not result.ok:
        sys.exit(1)
    if dry_run:
        print_success("Dry run complete: no data written")
    else:
        print_success("Firmware written and verified")


@app.command()
def plan(
    firmware: str = typer.Argument(..., help="Firmware path, raw binary (firmware.bin)"),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Write the wire stream to this .bin file"),
    limit: int = typer.Option(20, "--limit", "-n", help="Maximum frames to list (0 for all)"),
) -> None:
    """Show the frames a flashing session would send for FIRMWARE."""
    print_header("Frame Plan")

    try:
        image = FileFirmware(firmware).load()
        check_firmware_size(len(image))
    except FlasherError as exc:
        print_error(str(exc))
        sys.exit(1)

    frames = plan_frames(image)
    shown = frames if limit <= 0 else frames[:limit]

    table = Table(title=f"{len(frames)} frames for {len(image):,} bytes")
    table.add_column("#", justify="right")
    table.add_column("Command", style="cyan")
    table.add_column("Len", justify="right")
    table.add_column("Address", style="magenta")
    table.add_column("Sum", style="green")
    for index, frame in enumerate(shown):
        table.add_row(
            str(index),
            frame.name,
            str(frame.length),
            f"0x{frame.address:04X}",
            f"0x{frame.checksum:02X}",
        )
    console.print(table)
    if len(shown) < len(frames):
        console.print(f"[dim]... {len(frames) - len(shown)} more frames[/dim]")

    if output:
        result = core_dump_frames(firmware, output)
        if not result.ok:
            print_error(result.errors[0])
            sys.exit(1)
        print_success(f"Wire stream saved to {result.metadata['output']}")


def main() -> None:
    """Main entry point."""
    try:
        app()
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/yellow]")
        sys.exit(130)


if __name__ == "__main__":
    main()
