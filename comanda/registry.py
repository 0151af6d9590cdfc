"""In-process printer catalog shared by the dispatcher and the console."""

from __future__ import annotations

import logging
import threading
from dataclasses import replace
from datetime import datetime, timezone
from typing import Iterable
from uuid import uuid4

from comanda.config import (
    KITCHEN_PRINTER_PRODUCT_ID,
    KITCHEN_PRINTER_VENDOR_ID,
    RECEPTION_PRINTER_PRODUCT_ID,
    RECEPTION_PRINTER_VENDOR_ID,
)
from comanda.errors import NoPrinterConnected
from comanda.models import PrinterProfile, Purpose
from comanda.persistence import PrintJobRecord, ProfileStore

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def default_profiles() -> list[PrinterProfile]:
    """Catalog seed for a fresh install, one printer per purpose."""
    return [
        PrinterProfile(
            id=uuid4().hex,
            name="Cozinha",
            purpose=Purpose.KITCHEN,
            vendor_id=KITCHEN_PRINTER_VENDOR_ID,
            product_id=KITCHEN_PRINTER_PRODUCT_ID,
        ),
        PrinterProfile(
            id=uuid4().hex,
            name="Recepcao",
            purpose=Purpose.RECEPTION,
            vendor_id=RECEPTION_PRINTER_VENDOR_ID,
            product_id=RECEPTION_PRINTER_PRODUCT_ID,
        ),
    ]


class PrinterRegistry:
    """
    Printer profiles kept in memory and written through to a store.

    Built once at start-up and handed to whoever prints. Readers get copies,
    so a profile seen by the console never changes under it.
    """

    def __init__(self, profiles: Iterable[PrinterProfile] = (), store: ProfileStore | None = None) -> None:
        self._lock = threading.RLock()
        self._profiles: dict[str, PrinterProfile] = {}
        self.store = store
        for profile in profiles:
            self._profiles[profile.id] = replace(profile)

    @classmethod
    def from_store(cls, store: ProfileStore, seed: bool = True) -> PrinterRegistry:
        store.bootstrap_schema()
        profiles = store.load_profiles()
        registry = cls(profiles, store=store)
        if seed and not profiles:
            for profile in default_profiles():
                registry.add(profile)
            logger.info("Seeded printer catalog with default profiles")
        return registry

    def _persist(self, profile: PrinterProfile) -> None:
        if self.store is not None:
            self.store.save_profile(profile)

    def profiles(self) -> list[PrinterProfile]:
        with self._lock:
            return [replace(profile) for profile in self._profiles.values()]

    def get(self, profile_id: str) -> PrinterProfile:
        with self._lock:
            try:
                return replace(self._profiles[profile_id])
            except KeyError:
                raise KeyError(f"Unknown printer {profile_id!r}") from None

    def add(self, profile: PrinterProfile) -> PrinterProfile:
        with self._lock:
            for existing in self._profiles.values():
                if existing.name == profile.name and existing.id != profile.id:
                    raise ValueError(f"A printer named {profile.name!r} already exists")
            self._profiles[profile.id] = replace(profile)
            self._persist(profile)
            return replace(profile)

    def remove(self, profile_id: str) -> None:
        with self._lock:
            self._profiles.pop(profile_id, None)
            if self.store is not None:
                self.store.delete_profile(profile_id)

    def connected_for(self, purpose: Purpose) -> PrinterProfile:
        """First connected profile of the purpose, in catalog order."""
        purpose = Purpose(purpose)
        with self._lock:
            for profile in self._profiles.values():
                if profile.purpose is purpose and profile.is_connected:
                    return replace(profile)
        raise NoPrinterConnected(purpose.value)

    def _update(self, profile_id: str, **changes: object) -> PrinterProfile:
        with self._lock:
            current = self._profiles.get(profile_id)
            if current is None:
                raise KeyError(f"Unknown printer {profile_id!r}")
            updated = replace(current, **changes)
            self._profiles[profile_id] = updated
            self._persist(updated)
            return replace(updated)

    def record_print(self, profile_id: str, device_path: str | None = None, when: datetime | None = None) -> PrinterProfile:
        """Count a confirmed print and remember the node it went to."""
        with self._lock:
            current = self.get(profile_id)
            changes: dict[str, object] = {
                "print_count": current.print_count + 1,
                "last_used_at": when or _utc_now(),
            }
            if device_path:
                changes["device_path"] = device_path
            return self._update(profile_id, **changes)

    def set_connected(self, profile_id: str, connected: bool, when: datetime | None = None) -> PrinterProfile:
        changes: dict[str, object] = {"is_connected": connected}
        if connected:
            changes["last_used_at"] = when or _utc_now()
        return self._update(profile_id, **changes)

    def set_device_path(self, profile_id: str, device_path: str | None) -> PrinterProfile:
        return self._update(profile_id, device_path=(device_path or None))

    def log_job(self, kind: str, profile_id: str | None, status: str, message: str = "") -> PrintJobRecord | None:
        if self.store is None:
            return None
        return self.store.record_print_job(kind, profile_id, status, message)

    def recent_jobs(self, limit: int = 20) -> list[PrintJobRecord]:
        if self.store is None:
            return []
        return self.store.recent_jobs(limit)
