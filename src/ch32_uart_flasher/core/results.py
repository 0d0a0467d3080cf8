"""
Result objects for core operations.

One ``OperationResult`` is the terminal outcome of a flashing session:
success, or a failure tagged with the phase and error kind.
"""

from dataclasses import dataclass, field
from typing import List, Dict, Any


@dataclass
class OperationResult:
    """
    Unified result object for core operations.

    Attributes:
        ok: Whether the operation completed successfully
        operation: Name of the operation (e.g., "flash", "dump_frames")
        device: Serial device the session ran against
        bytes_len: Firmware size in bytes
        phase: Phase that failed ("erase", "write", "verify", "end")
        error_kind: Stable error kind of the failure
        hashes: Dict of hash values (sha256 of the image)
        warnings: Non-blocking issues encountered
        warning_codes: Stable code per warning, same order as warnings
        errors: Blocking errors that caused failure
        metadata: Additional operation-specific data
        logs: Captured log lines from the operation
    """
    ok: bool
    operation: str
    device: str = ""
    bytes_len: int = 0
    phase: str = ""
    error_kind: str = ""
    hashes: Dict[str, str] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)
    warning_codes: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)
    logs: List[str] = field(default_factory=list)

    def add_warning(self, message: str, code: str = "") -> None:
        """Add a warning message with an optional stable code."""
        self.warnings.append(message)
        self.warning_codes.append(code)

    def add_error(self, message: str) -> None:
        """Add an error message and mark result as failed."""
        self.errors.append(message)
        self.ok = False

    def to_summary(self) -> str:
        """Human-readable summary for CLI output or logging."""
        status = "SUCCESS" if self.ok else "FAILED"
        lines = [f"[{status}] {self.operation}"]

        if self.device:
            lines.append(f"  Device: {self.device}")
        if self.bytes_len:
            lines.append(f"  Bytes: {self.bytes_len:,}")
        if self.phase:
            lines.append(f"  Phase: {self.phase}")

        for name, value in self.hashes.items():
            lines.append(f"  {name}: {value[:16]}...")

        if self.warnings:
            lines.append("  Warnings:")
            for warn in self.warnings:
                lines.append(f"    - {warn}")

        if self.errors:
            lines.append("  Errors:")
            for err in self.errors:
                lines.append(f"    - {err}")

        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "ok": self.ok,
            "operation": self.operation,
            "device": self.device,
            "bytes_len": self.bytes_len,
            "phase": self.phase,
            "error_kind": self.error_kind,
            "hashes": self.hashes,
            "warnings": self.warnings,
            "warning_codes": self.warning_codes,
            "errors": self.errors,
            "metadata": self.metadata,
            "logs": self.logs,
        }

    @classmethod
    def success(
        cls,
        operation: str,
        device: str = "",
        bytes_len: int = 0,
        **kwargs,
    ) -> "OperationResult":
        """Create a successful result."""
        return cls(ok=True, operation=operation, device=device, bytes_len=bytes_len, **kwargs)

    @classmethod
    def failure(
        cls,
        operation: str,
        error: str,
        device: str = "",
        **kwargs,
    ) -> "OperationResult":
        """Create a failed result."""
        result = cls(ok=False, operation=operation, device=device, **kwargs)
        result.errors.append(error)
        return result
