"""Rich text helpers for the operator console."""

from __future__ import annotations

from rich.text import Text

from comanda.models import PrinterProfile, Purpose
from comanda.persistence import PrintJobRecord
from comanda.printer import STATUS_PRINTED, STATUS_SKIPPED, PrintResult
from comanda.receipt import format_timestamp


def badge_style(purpose: Purpose) -> str:
    """Return a consistent badge style for printer purposes."""
    if purpose is Purpose.KITCHEN:
        return "bold #ffffff on #b23a48"
    return "bold #ffffff on #2f6db5"


def purpose_badge(purpose: Purpose) -> str:
    return "K" if purpose is Purpose.KITCHEN else "R"


def format_profile_label(profile: PrinterProfile) -> Text:
    """Badge, name, USB ids and connection state on one line."""
    text = Text()
    text.append(purpose_badge(profile.purpose), style=badge_style(profile.purpose))
    text.append(f" {profile.name} ")
    text.append(f"[{profile.vendor_id}:{profile.product_id}] ", style="dim")
    if profile.is_connected:
        text.append("connected", style="bold green")
    else:
        text.append("offline", style="bold red")
    return text


def format_profile_details(profile: PrinterProfile) -> Text:
    last_used = format_timestamp(profile.last_used_at) if profile.last_used_at else "never"
    text = Text()
    text.append(f"Purpose: {profile.purpose.value}\n")
    text.append(f"Device: {profile.device_path or '(auto)'}\n")
    text.append(f"Prints: {profile.print_count}\n")
    text.append(f"Last used: {last_used}\n")
    text.append(f"Paper: {profile.settings.paper_width_mm}mm")
    return text


def format_result(result: PrintResult) -> Text:
    style = "bold green" if result.success else "bold red"
    return Text(result.message, style=style)


def format_job_row(job: PrintJobRecord) -> Text:
    text = Text()
    style = {STATUS_PRINTED: "green", STATUS_SKIPPED: "yellow"}.get(job.status, "red")
    text.append(f"{job.created_at[:19]} ", style="dim")
    text.append(f"{job.status:<12}", style=style)
    text.append(f" {job.kind}")
    return text


def format_paths(paths: list[str]) -> Text:
    if not paths:
        return Text("No device nodes found", style="dim")
    return Text("\n".join(paths))
