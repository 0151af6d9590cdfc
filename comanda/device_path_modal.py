"""Device path entry modal screen."""

from __future__ import annotations

from textual.app import ComposeResult
from textual.containers import Vertical
from textual.screen import ModalScreen
from textual.widgets import Input, Label

_MAX_PATH_LENGTH = 64


def validate_device_path(value: str) -> str | None:
    """Return an error message, or None when the path is acceptable. Blank clears the path."""
    value = value.strip()
    if not value:
        return None
    if not value.startswith("/dev/"):
        return "Device path must start with /dev/."
    if " " in value:
        return "Device path cannot contain spaces."
    return None


class DevicePathModal(ModalScreen[str | None]):
    """Ask for the device node of one printer; dismisses with None on cancel."""

    BINDINGS = [("escape", "cancel", "Cancel")]

    DEFAULT_CSS = """
    DevicePathModal {
        align: center middle;
    }

    DevicePathModal > Vertical {
        width: 60;
        height: auto;
        border: round $secondary;
        background: $panel;
        padding: 1 2;
    }

    DevicePathModal #device-path-error {
        color: $error;
    }
    """

    def __init__(self, printer_name: str, current: str | None = None) -> None:
        super().__init__()
        self.printer_name = printer_name
        self.current = current or ""
        self.error = ""

    def compose(self) -> ComposeResult:
        with Vertical():
            yield Label(f"Device node for {self.printer_name} (blank = auto)")
            yield Input(value=self.current, placeholder="/dev/usb/lp0", max_length=_MAX_PATH_LENGTH)
            yield Label("", id="device-path-error")

    def _show_error(self, message: str) -> None:
        self.error = message
        self.query_one("#device-path-error", Label).update(message)

    def on_input_changed(self, event: Input.Changed) -> None:
        self._show_error("")

    def on_input_submitted(self, event: Input.Submitted) -> None:
        error = validate_device_path(event.value)
        if error:
            self._show_error(error)
            return
        # Empty string tells the caller to go back to auto-detection.
        self.dismiss(event.value.strip())

    def action_cancel(self) -> None:
        self.dismiss(None)
