"""Runtime configuration defaults for the printer catalog and receipt output."""

from __future__ import annotations

import os


def _env_str(name: str, default: str) -> str:
    value = os.environ.get(name, "").strip()
    return value or default


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name, "").strip().lower()
    if not raw:
        return default
    return raw not in {"0", "false", "no", "off"}


def parse_path_list(raw: str) -> tuple[str, ...]:
    """Split a comma or os.pathsep separated list, dropping blanks and duplicates."""
    normalized = raw.replace(os.pathsep, ",")
    paths: list[str] = []
    for chunk in normalized.split(","):
        path = chunk.strip()
        if path and path not in paths:
            paths.append(path)
    return tuple(paths)


DB_PATH = _env_str("COMANDA_DB_PATH", "data/comanda.db")
LOG_PATH = _env_str("COMANDA_LOG_PATH", "data/comanda.log")
LOG_LEVEL = _env_str("COMANDA_LOG_LEVEL", "INFO").upper()

# Tried in order when a profile has no usable device path.
_DEFAULT_DEVICE_CANDIDATES = (
    "/dev/usb/lp0",
    "/dev/usb/lp1",
    "/dev/usb/lp2",
    "/dev/usb/lp3",
    "/dev/lp0",
    "/dev/lp1",
    "/dev/lp2",
    "/dev/lp3",
)
DEVICE_CANDIDATES = parse_path_list(os.environ.get("COMANDA_DEVICE_PATHS", "")) or _DEFAULT_DEVICE_CANDIDATES

# Depends on USB enumeration order; only used when several nodes exist and the profile has none set.
PURPOSE_PATH_HEURISTIC = _env_flag("COMANDA_PURPOSE_HEURISTIC", True)
KITCHEN_PREFERRED_PATH = "/dev/usb/lp1"
RECEPTION_PREFERRED_PATH = "/dev/usb/lp0"

WRITE_TIMEOUT_SECONDS = _env_float("COMANDA_WRITE_TIMEOUT", 5.0)

# Receipt text is sent in the device code page, not UTF-8.
RECEIPT_ENCODING = _env_str("RECEIPT_ENCODING", "latin-1")
RECEIPT_TIMEZONE = _env_str("RECEIPT_TIMEZONE", "America/Sao_Paulo")
RECEIPT_DATETIME_FORMAT = "%d/%m/%Y %H:%M:%S"
RECEIPT_TIME_FORMAT = "%H:%M:%S"
RULE_WIDTH = 32
RECEIPT_FOOTER_LINES = ("Obrigado pela preferencia!", "Volte sempre!")
KITCHEN_CATEGORIES = ("PETISCOS", "SUCOS")

# Seed values for an empty catalog.
KITCHEN_PRINTER_VENDOR_ID = _env_str("KITCHEN_PRINTER_VENDOR_ID", "0x0483")
KITCHEN_PRINTER_PRODUCT_ID = _env_str("KITCHEN_PRINTER_PRODUCT_ID", "0x070b")
RECEPTION_PRINTER_VENDOR_ID = _env_str("RECEPTION_PRINTER_VENDOR_ID", "0x0483")
RECEPTION_PRINTER_PRODUCT_ID = _env_str("RECEPTION_PRINTER_PRODUCT_ID", "0x070c")

# Preview rendering, 58mm head at 203 dpi.
PRINTER_WIDTH_PX = 384
PREVIEW_FONT_SIZE = 20
PREVIEW_LEFT_INDENT_PX = 4
