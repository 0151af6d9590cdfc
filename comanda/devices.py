"""Device node discovery for USB thermal printers."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Protocol

from comanda.config import (
    DEVICE_CANDIDATES,
    KITCHEN_PREFERRED_PATH,
    PURPOSE_PATH_HEURISTIC,
    RECEPTION_PREFERRED_PATH,
)
from comanda.models import PrinterProfile, Purpose

logger = logging.getLogger(__name__)

PURPOSE_PREFERRED_PATHS: dict[Purpose, str] = {
    Purpose.KITCHEN: KITCHEN_PREFERRED_PATH,
    Purpose.RECEPTION: RECEPTION_PREFERRED_PATH,
}

UsbFinder = Callable[[int, int], Any]


class DeviceScanner(Protocol):
    def exists(self, path: str) -> bool: ...


class FilesystemScanner:
    """Checks device nodes on the local filesystem."""

    def exists(self, path: str) -> bool:
        return os.path.exists(path)


class StaticScanner:
    """In-memory scanner for tests and demo setups without hardware."""

    def __init__(self, paths: Iterable[str] = ()) -> None:
        self.paths = set(paths)

    def exists(self, path: str) -> bool:
        return path in self.paths


class DeviceResolver:
    """
    Pick the device node a profile's bytes should go to.

    Resolution order:
    1. the profile's own ``device_path`` when it still exists
    2. with several candidate nodes present, the purpose preference
       (kitchen -> /dev/usb/lp1, reception -> /dev/usb/lp0)
    3. the first existing candidate

    Nothing here proves the node belongs to the profile's vendor/product id.
    An explicit ``device_path`` is the reliable way to pin a printer.
    """

    def __init__(
        self,
        scanner: DeviceScanner | None = None,
        candidates: Iterable[str] = DEVICE_CANDIDATES,
        purpose_preferences: dict[Purpose, str] | None = None,
        use_purpose_heuristic: bool = PURPOSE_PATH_HEURISTIC,
    ) -> None:
        self.scanner = scanner or FilesystemScanner()
        self.candidates = tuple(candidates)
        self.purpose_preferences = dict(PURPOSE_PREFERRED_PATHS if purpose_preferences is None else purpose_preferences)
        self.use_purpose_heuristic = use_purpose_heuristic

    def available_paths(self) -> list[str]:
        return [path for path in self.candidates if self.scanner.exists(path)]

    def resolve(self, profile: PrinterProfile) -> str | None:
        if profile.device_path and self.scanner.exists(profile.device_path):
            return profile.device_path
        if profile.device_path:
            logger.info("Configured path %s for %r is gone, probing candidates", profile.device_path, profile.name)

        available = self.available_paths()
        if not available:
            logger.warning("No device node found for %r", profile.name)
            return None

        if self.use_purpose_heuristic and len(available) > 1 and not profile.device_path:
            preferred = self.purpose_preferences.get(profile.purpose)
            if preferred in available:
                return preferred
        return available[0]


def parse_usb_id(value: str | int) -> int:
    """Parse ``"0x6868"``/``"6868"`` (always hex) or an int into a USB id."""
    if isinstance(value, int):
        number = value
    else:
        text = str(value).strip().lower()
        if text.startswith("0x"):
            text = text[2:]
        if not text:
            raise ValueError("empty USB id")
        number = int(text, 16)
    if not (0 <= number <= 0xFFFF):
        raise ValueError(f"USB id out of range: {value!r}")
    return number


def format_usb_id(value: int) -> str:
    return f"0x{value:04x}"


@dataclass(frozen=True)
class UsbDeviceInfo:
    vendor_id: str
    product_id: str
    bus: int | None = None
    address: int | None = None


@dataclass(frozen=True)
class ConnectionCheck:
    connected: bool
    message: str


def find_usb_device(vendor_id: int, product_id: int) -> Any:
    """Look the device up through pyusb, the backend python-escpos uses for USB."""
    import usb.core

    return usb.core.find(idVendor=vendor_id, idProduct=product_id)


def list_usb_devices() -> list[UsbDeviceInfo]:
    """Every USB device visible to libusb; empty when no backend is installed."""
    try:
        import usb.core

        devices = list(usb.core.find(find_all=True))
    except Exception as exc:
        logger.warning("USB enumeration unavailable: %s", exc)
        return []
    return [
        UsbDeviceInfo(
            vendor_id=format_usb_id(device.idVendor),
            product_id=format_usb_id(device.idProduct),
            bus=getattr(device, "bus", None),
            address=getattr(device, "address", None),
        )
        for device in devices
    ]


def check_usb_connection(profile: PrinterProfile, finder: UsbFinder | None = None) -> ConnectionCheck:
    """Best-effort presence and access test for a profile's USB ids."""
    try:
        vendor_id, product_id = profile.usb_ids
    except ValueError as exc:
        return ConnectionCheck(False, f"Invalid USB id on {profile.name!r}: {exc}")

    find = finder or find_usb_device
    ids = f"vendor {profile.vendor_id} / product {profile.product_id}"
    try:
        device = find(vendor_id, product_id)
    except Exception as exc:
        # pyusb raises NoBackendError (a ValueError) when libusb is missing.
        logger.warning("USB lookup failed for %r: %s", profile.name, exc)
        return ConnectionCheck(False, f"Could not access USB devices: {exc}")

    if device is None:
        return ConnectionCheck(False, f"Printer {profile.name!r} not found. Check the USB cable ({ids}).")

    try:
        device.get_active_configuration()
    except Exception as exc:
        return ConnectionCheck(
            False,
            f"Printer {profile.name!r} found but not accessible: {exc}. Check udev rules or run with more privileges.",
        )
    return ConnectionCheck(True, f"Printer {profile.name!r} connected ({ids})")
