"""Print failure taxonomy.

Every error carries a ``message`` meant to be shown to the operator as is.
None of them is retried automatically: with paper in the loop a blind retry
can duplicate a ticket once the printer comes back.
"""

from __future__ import annotations


class PrintError(Exception):
    """Base class for recoverable print failures."""

    kind = "print_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NoPrinterConnected(PrintError):
    kind = "no_printer_connected"

    def __init__(self, purpose: str) -> None:
        self.purpose = purpose
        super().__init__(f"No {purpose} printer is connected")


class DevicePathUnresolved(PrintError):
    kind = "device_path_unresolved"

    def __init__(self, printer_name: str, candidates: tuple[str, ...] = ()) -> None:
        self.printer_name = printer_name
        self.candidates = candidates
        tried = f" (tried {', '.join(candidates)})" if candidates else ""
        super().__init__(f"No device path found for printer {printer_name!r}{tried}")


class DeviceWriteFailed(PrintError):
    kind = "device_write_failed"

    def __init__(self, device_path: str, reason: str) -> None:
        self.device_path = device_path
        self.reason = reason
        super().__init__(f"Could not write to {device_path}: {reason}")


class MalformedAggregate(PrintError):
    kind = "malformed_aggregate"

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Cannot print receipt: {reason}")


class UnknownPrinter(PrintError):
    kind = "unknown_printer"

    def __init__(self, profile_id: str) -> None:
        self.profile_id = profile_id
        super().__init__(f"Unknown printer {profile_id!r}")
