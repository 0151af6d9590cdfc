"""SQLite persistence for printer profiles and the print job journal."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator
from uuid import uuid4

from comanda.config import DB_PATH
from comanda.models import PrinterProfile, PrinterSettings, Purpose


@dataclass(frozen=True)
class PrintJobRecord:
    """One dispatched print, successful or not."""

    job_id: str
    created_at: str
    printer_id: str | None
    kind: str
    status: str
    message: str


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _to_iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _from_iso(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _row_to_profile(row: sqlite3.Row) -> PrinterProfile:
    return PrinterProfile(
        id=row["id"],
        name=row["name"],
        purpose=Purpose(row["purpose"]),
        vendor_id=row["vendor_id"],
        product_id=row["product_id"],
        device_path=row["device_path"],
        is_connected=bool(row["is_connected"]),
        print_count=int(row["print_count"]),
        last_used_at=_from_iso(row["last_used_at"]),
        settings=PrinterSettings(paper_width_mm=int(row["paper_width_mm"]), baud_rate=int(row["baud_rate"])),
    )


class ProfileStore:
    """Printer catalog stored in one SQLite file."""

    def __init__(self, db_path: str | Path = DB_PATH) -> None:
        self.db_path = Path(db_path)

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    def bootstrap_schema(self) -> None:
        """Create persistence schema if it does not already exist."""
        with self._connect() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS printers (
                    id TEXT PRIMARY KEY,
                    position INTEGER NOT NULL,
                    name TEXT NOT NULL UNIQUE,
                    purpose TEXT NOT NULL,
                    vendor_id TEXT NOT NULL,
                    product_id TEXT NOT NULL,
                    device_path TEXT,
                    is_connected INTEGER NOT NULL DEFAULT 0,
                    print_count INTEGER NOT NULL DEFAULT 0,
                    last_used_at TEXT,
                    paper_width_mm INTEGER NOT NULL DEFAULT 80,
                    baud_rate INTEGER NOT NULL DEFAULT 9600
                );

                CREATE TABLE IF NOT EXISTS print_jobs (
                    id TEXT PRIMARY KEY,
                    created_at TEXT NOT NULL,
                    printer_id TEXT,
                    kind TEXT NOT NULL,
                    status TEXT NOT NULL,
                    message TEXT NOT NULL DEFAULT ''
                );

                CREATE INDEX IF NOT EXISTS idx_print_jobs_created_at
                    ON print_jobs(created_at);
                """
            )

    def load_profiles(self) -> list[PrinterProfile]:
        """Profiles in catalog order (insertion order)."""
        with self._connect() as conn:
            rows = conn.execute("SELECT * FROM printers ORDER BY position, name").fetchall()
        return [_row_to_profile(row) for row in rows]

    def save_profile(self, profile: PrinterProfile) -> None:
        """Insert or update a profile, keeping its catalog position."""
        with self._connect() as conn:
            with conn:
                existing = conn.execute("SELECT position FROM printers WHERE id = ?", (profile.id,)).fetchone()
                if existing is None:
                    position = conn.execute("SELECT COALESCE(MAX(position), -1) + 1 FROM printers").fetchone()[0]
                else:
                    position = existing["position"]
                conn.execute(
                    """
                    INSERT OR REPLACE INTO printers (
                        id, position, name, purpose, vendor_id, product_id, device_path,
                        is_connected, print_count, last_used_at, paper_width_mm, baud_rate
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        profile.id,
                        position,
                        profile.name,
                        profile.purpose.value,
                        profile.vendor_id,
                        profile.product_id,
                        profile.device_path,
                        int(profile.is_connected),
                        profile.print_count,
                        _to_iso(profile.last_used_at),
                        profile.settings.paper_width_mm,
                        profile.settings.baud_rate,
                    ),
                )

    def delete_profile(self, profile_id: str) -> None:
        with self._connect() as conn:
            with conn:
                conn.execute("DELETE FROM printers WHERE id = ?", (profile_id,))

    def record_print_job(self, kind: str, printer_id: str | None, status: str, message: str = "") -> PrintJobRecord:
        record = PrintJobRecord(
            job_id=uuid4().hex,
            created_at=_utc_now_iso(),
            printer_id=printer_id,
            kind=kind,
            status=status,
            message=message,
        )
        with self._connect() as conn:
            with conn:
                conn.execute(
                    "INSERT INTO print_jobs (id, created_at, printer_id, kind, status, message) VALUES (?, ?, ?, ?, ?, ?)",
                    (record.job_id, record.created_at, record.printer_id, record.kind, record.status, record.message),
                )
        return record

    def recent_jobs(self, limit: int = 20) -> list[PrintJobRecord]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM print_jobs ORDER BY created_at DESC, rowid DESC LIMIT ?",
                (limit,),
            ).fetchall()
        return [
            PrintJobRecord(
                job_id=row["id"],
                created_at=row["created_at"],
                printer_id=row["printer_id"],
                kind=row["kind"],
                status=row["status"],
                message=row["message"],
            )
            for row in rows
        ]
