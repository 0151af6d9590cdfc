"""Main Textual app class."""

from __future__ import annotations

import logging
from pathlib import Path

from rich.text import Text
from textual.app import App, ComposeResult
from textual.containers import Horizontal, Vertical
from textual.css.query import NoMatches
from textual.reactive import reactive
from textual.widgets import Header, Static

from comanda.device_path_modal import DevicePathModal
from comanda.devices import list_usb_devices
from comanda.models import PrinterProfile
from comanda.preview import save_preview
from comanda.printer import PrintDispatcher
from comanda.receipt import format_test_page
from comanda.rendering import (
    format_job_row,
    format_paths,
    format_profile_details,
    format_profile_label,
    format_result,
)

logger = logging.getLogger(__name__)

PREVIEW_PATH = Path("data/preview.png")


class PrinterConsoleApp(App):
    """A Textual console for checking and exercising the receipt printers."""

    TITLE = "Comanda"
    SUB_TITLE = "Printers"

    CSS = """
    Screen {
        layout: vertical;
    }

    #main-layout {
        height: 1fr;
    }

    #printers-pane {
        width: 3fr;
        border: round $primary;
        padding: 1;
    }

    #side-pane {
        width: 2fr;
        border: round $secondary;
        padding: 1;
    }

    #status-bar {
        border: heavy $secondary;
        padding: 0 1;
        margin-bottom: 1;
        height: auto;
        max-height: 10;
    }

    #printers-list {
        height: 1fr;
        border: tall $surface;
        padding: 0 1;
    }

    #details {
        height: auto;
        border: tall $surface;
        padding: 0 1;
        margin-bottom: 1;
    }

    #jobs {
        height: 1fr;
        border: tall $surface;
        padding: 0 1;
    }

    .pane-title {
        text-style: bold;
        margin-bottom: 1;
    }
    """

    selected_index = reactive(0)

    BINDINGS = [
        ("j", "move_selection(1)", "Next"),
        ("k", "move_selection(-1)", "Previous"),
        ("down", "move_selection(1)", "Next"),
        ("up", "move_selection(-1)", "Previous"),
        ("t", "test_connection", "Test USB"),
        ("p", "print_test_page", "Test page"),
        ("a", "scan_paths", "Scan paths"),
        ("u", "list_usb", "USB devices"),
        ("d", "edit_device_path", "Device path"),
        ("v", "save_preview", "Preview"),
        ("ctrl+q", "quit", "Quit"),
    ]

    def __init__(self, dispatcher: PrintDispatcher) -> None:
        super().__init__()
        self.dispatcher = dispatcher
        self.registry = dispatcher.registry
        self.status: Text = Text("Ready")
        self.available_paths: list[str] = []

    def compose(self) -> ComposeResult:
        yield Header()
        with Horizontal(id="main-layout"):
            with Vertical(id="printers-pane"):
                yield Static("Printers", classes="pane-title")
                yield Static("(no printers configured)", id="printers-list")
            with Vertical(id="side-pane"):
                yield Static(id="status-bar")
                yield Static(id="details")
                yield Static(id="jobs")

    def on_mount(self) -> None:
        self.available_paths = self.dispatcher.resolver.available_paths()
        logger.info("Console started, device nodes: %s", self.available_paths or "none")
        self._refresh_all()

    def _modal_open(self) -> bool:
        return isinstance(self.screen, DevicePathModal)

    def _profiles(self) -> list[PrinterProfile]:
        return self.registry.profiles()

    def _selected_profile(self) -> PrinterProfile | None:
        profiles = self._profiles()
        if not profiles:
            return None
        if not (0 <= self.selected_index < len(profiles)):
            self.selected_index = 0
        return profiles[self.selected_index]

    def _set_status(self, status: Text | str) -> None:
        self.status = status if isinstance(status, Text) else Text(status)
        self._refresh_all()

    def action_move_selection(self, delta: int) -> None:
        if self._modal_open():
            return
        profiles = self._profiles()
        if not profiles:
            return
        self.selected_index = (self.selected_index + delta) % len(profiles)
        self._refresh_all()

    def action_test_connection(self) -> None:
        profile = self._selected_profile()
        if profile is None or self._modal_open():
            return
        result = self.dispatcher.test_connection(profile.id)
        self._set_status(format_result(result))

    def action_print_test_page(self) -> None:
        profile = self._selected_profile()
        if profile is None or self._modal_open():
            return
        result = self.dispatcher.print_test_page(profile.id)
        self._set_status(format_result(result))

    def action_scan_paths(self) -> None:
        if self._modal_open():
            return
        self.available_paths = self.dispatcher.resolver.available_paths()
        self._set_status(f"{len(self.available_paths)} device node(s) found")

    def action_list_usb(self) -> None:
        if self._modal_open():
            return
        devices = list_usb_devices()
        status = Text(f"{len(devices)} USB device(s)")
        for device in devices:
            status.append(f"\n{device.vendor_id}:{device.product_id}", style="dim")
        self._set_status(status)

    def action_edit_device_path(self) -> None:
        profile = self._selected_profile()
        if profile is None or self._modal_open():
            return

        def _apply(value: str | None) -> None:
            if value is None:
                return
            updated = self.registry.set_device_path(profile.id, value or None)
            logger.info("Device path for %r set to %s", updated.name, updated.device_path or "auto")
            self._set_status(f"{updated.name}: device path {updated.device_path or 'auto'}")

        self.push_screen(DevicePathModal(profile.name, profile.device_path), _apply)

    def action_save_preview(self) -> None:
        profile = self._selected_profile()
        if profile is None or self._modal_open():
            return
        target = save_preview(format_test_page(profile), PREVIEW_PATH)
        self._set_status(f"Preview saved to {target}")

    def _refresh_all(self) -> None:
        self._refresh_printers()
        self._refresh_side()

    def _refresh_printers(self) -> None:
        try:
            printers_widget = self.query_one("#printers-list", Static)
        except NoMatches:
            return
        profiles = self._profiles()
        if not profiles:
            printers_widget.update("(no printers configured)")
            return

        lines = Text()
        for idx, profile in enumerate(profiles):
            if idx > 0:
                lines.append("\n")
            pointer = "➤ " if idx == self.selected_index else "  "
            lines.append(pointer)
            lines.append_text(format_profile_label(profile))
        printers_widget.update(lines)

    def _refresh_side(self) -> None:
        try:
            status_bar = self.query_one("#status-bar", Static)
            details = self.query_one("#details", Static)
            jobs = self.query_one("#jobs", Static)
        except NoMatches:
            return

        help_line = Text("t test USB  p test page  d device path  a scan  u usb  v preview\n", style="dim")
        status_bar.update(help_line + self.status)

        profile = self._selected_profile()
        body = Text()
        if profile is not None:
            body.append_text(format_profile_details(profile))
            body.append("\n\n")
        body.append("Device nodes:\n", style="bold")
        body.append_text(format_paths(self.available_paths))
        details.update(body)

        recent = self.registry.recent_jobs(10)
        job_lines = Text("Recent jobs\n", style="bold")
        if not recent:
            job_lines.append("(none yet)", style="dim")
        for idx, job in enumerate(recent):
            if idx > 0:
                job_lines.append("\n")
            job_lines.append_text(format_job_row(job))
        jobs.update(job_lines)
