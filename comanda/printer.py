"""Print job dispatch: pick the printer, resolve its node, write the ticket."""

from __future__ import annotations

import logging
import sqlite3
import threading
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from comanda.commands import Receipt
from comanda.config import KITCHEN_CATEGORIES, RECEIPT_ENCODING, WRITE_TIMEOUT_SECONDS
from comanda.devices import DeviceResolver, UsbFinder, check_usb_connection
from comanda.errors import DevicePathUnresolved, DeviceWriteFailed, MalformedAggregate, PrintError, UnknownPrinter
from comanda.models import LineItem, OrderAggregate, PrinterProfile, Purpose, TableSummaryAggregate
from comanda.receipt import (
    format_cancellation_slip,
    format_kitchen_ticket,
    format_order_receipt,
    format_table_summary_receipt,
    format_test_page,
    kitchen_items,
)
from comanda.registry import PrinterRegistry

logger = logging.getLogger(__name__)

Transport = Callable[[str, bytes], None]

STATUS_PRINTED = "PRINTED"
STATUS_PRINT_FAILED = "PRINT_FAILED"
STATUS_SKIPPED = "SKIPPED"


def write_with_escpos(device_path: str, payload: bytes) -> None:
    """Send an already rendered ESC/POS stream to a device node, unchanged."""
    from escpos.printer import File

    printer = File(device_path, auto_flush=True)
    printer.open()
    try:
        printer._raw(payload)
    finally:
        printer.close()


class DeviceWriter:
    """
    Writes payloads to device nodes, one job at a time per node.

    Each node gets its own single-worker queue, so two tickets for the same
    printer never interleave. The caller waits at most ``timeout`` seconds
    (queue time included); a job still queued when its caller gives up is
    cancelled so it cannot print later as a surprise duplicate.
    """

    def __init__(self, transport: Transport | None = None, timeout: float = WRITE_TIMEOUT_SECONDS) -> None:
        self.transport = transport or write_with_escpos
        self.timeout = timeout
        self._queues: dict[str, ThreadPoolExecutor] = {}
        self._lock = threading.Lock()

    def _queue_for(self, device_path: str) -> ThreadPoolExecutor:
        with self._lock:
            queue = self._queues.get(device_path)
            if queue is None:
                queue = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"print:{device_path}")
                self._queues[device_path] = queue
            return queue

    def write(self, device_path: str, payload: bytes) -> None:
        future = self._queue_for(device_path).submit(self.transport, device_path, payload)
        try:
            future.result(timeout=self.timeout)
        except FutureTimeout as exc:
            future.cancel()
            raise DeviceWriteFailed(device_path, f"timed out after {self.timeout:g}s") from exc
        except Exception as exc:
            raise DeviceWriteFailed(device_path, str(exc) or type(exc).__name__) from exc

    def close(self) -> None:
        with self._lock:
            queues = list(self._queues.values())
            self._queues.clear()
        for queue in queues:
            queue.shutdown(wait=False, cancel_futures=True)


@dataclass(frozen=True)
class PrintResult:
    """Outcome of one dispatch, with a message for the operator."""

    success: bool
    message: str
    error: PrintError | None = None
    printer_id: str | None = None
    device_path: str | None = None
    bytes_written: int = 0

    @property
    def error_kind(self) -> str | None:
        return self.error.kind if self.error is not None else None


class PrintDispatcher:
    """Runs print jobs end to end. Failures come back as results, never raised."""

    def __init__(
        self,
        registry: PrinterRegistry,
        resolver: DeviceResolver | None = None,
        writer: DeviceWriter | None = None,
        encoding: str = RECEIPT_ENCODING,
        usb_finder: UsbFinder | None = None,
    ) -> None:
        self.registry = registry
        self.resolver = resolver or DeviceResolver()
        self.writer = writer or DeviceWriter()
        self.encoding = encoding
        self.usb_finder = usb_finder

    def _lookup(self, profile_id: str) -> PrinterProfile:
        try:
            return self.registry.get(profile_id)
        except KeyError:
            raise UnknownPrinter(profile_id) from None

    def _journal(self, kind: str, printer_id: str | None, status: str, message: str) -> None:
        # The job outcome stands even when the journal cannot be written.
        try:
            self.registry.log_job(kind, printer_id, status, message)
        except sqlite3.Error:
            logger.exception("Could not journal %s job (%s)", kind, status)

    def _failed(self, kind: str, exc: PrintError, printer_id: str | None = None) -> PrintResult:
        logger.warning("%s failed (%s): %s", kind, exc.kind, exc.message)
        self._journal(kind, printer_id, STATUS_PRINT_FAILED, exc.message)
        return PrintResult(success=False, message=exc.message, error=exc, printer_id=printer_id)

    def _render(self, build: Callable[[], Receipt]) -> bytes:
        try:
            return build().render(self.encoding)
        except PrintError:
            raise
        except Exception as exc:
            logger.exception("Receipt formatting failed")
            raise MalformedAggregate(f"could not format receipt ({type(exc).__name__}: {exc})") from exc

    def _run(
        self,
        kind: str,
        build: Callable[[], Receipt],
        success_message: str,
        purpose: Purpose | None = None,
        profile_id: str | None = None,
    ) -> PrintResult:
        profile: PrinterProfile | None = None
        try:
            if profile_id is not None:
                profile = self._lookup(profile_id)
            else:
                profile = self.registry.connected_for(purpose)
            device_path = self.resolver.resolve(profile)
            if device_path is None:
                raise DevicePathUnresolved(profile.name, self.resolver.candidates)
            payload = self._render(build)
            self.writer.write(device_path, payload)
        except PrintError as exc:
            return self._failed(kind, exc, profile.id if profile is not None else None)

        # Bytes are on paper from here on; bookkeeping errors must not turn this into a failure.
        try:
            self.registry.record_print(profile.id, device_path=device_path)
        except (KeyError, sqlite3.Error):
            logger.exception("Could not record print on %r", profile.name)
        self._journal(kind, profile.id, STATUS_PRINTED, success_message)
        logger.info("%s printed on %r via %s (%d bytes)", kind, profile.name, device_path, len(payload))
        return PrintResult(
            success=True,
            message=success_message,
            printer_id=profile.id,
            device_path=device_path,
            bytes_written=len(payload),
        )

    def print_order(self, order: OrderAggregate, purpose: Purpose = Purpose.RECEPTION) -> PrintResult:
        return self._run(
            "order_receipt",
            lambda: format_order_receipt(order),
            f"Order for table {order.table_number} printed",
            purpose=purpose,
        )

    def print_table_summary(self, summary: TableSummaryAggregate, purpose: Purpose = Purpose.RECEPTION) -> PrintResult:
        return self._run(
            "table_summary",
            lambda: format_table_summary_receipt(summary),
            f"Table {summary.table_number} summary printed",
            purpose=purpose,
        )

    def print_kitchen_ticket(
        self,
        order: OrderAggregate,
        categories: tuple[str, ...] = KITCHEN_CATEGORIES,
    ) -> PrintResult:
        items = kitchen_items(order, categories)
        if not items:
            # Nothing for the kitchen is not a failure; no bytes are sent.
            message = "No kitchen items to print"
            self._journal("kitchen_ticket", None, STATUS_SKIPPED, message)
            return PrintResult(success=True, message=message)
        return self._run(
            "kitchen_ticket",
            lambda: format_kitchen_ticket(order, categories),
            f"{len(items)} item(s) sent to the kitchen",
            purpose=Purpose.KITCHEN,
        )

    def print_cancellation(
        self,
        item: LineItem,
        table_number: int,
        waiter_name: str,
        reason: str | None = None,
        when: datetime | None = None,
    ) -> PrintResult:
        return self._run(
            "cancellation",
            lambda: format_cancellation_slip(item, table_number, waiter_name, reason, when),
            f"Cancellation of {item.product_name!r} printed",
            purpose=Purpose.KITCHEN,
        )

    def print_test_page(self, profile_id: str) -> PrintResult:
        """Prints on the given profile even if it is not marked connected."""
        try:
            profile = self._lookup(profile_id)
        except UnknownPrinter as exc:
            return self._failed("test_page", exc)
        return self._run(
            "test_page",
            lambda: format_test_page(profile),
            f"Test page sent to {profile.name!r}",
            profile_id=profile_id,
        )

    def test_connection(self, profile_id: str) -> PrintResult:
        """Check the USB device behind a profile and store the outcome."""
        try:
            profile = self._lookup(profile_id)
        except UnknownPrinter as exc:
            logger.warning("Connection test failed: %s", exc.message)
            return PrintResult(success=False, message=exc.message, error=exc)
        check = check_usb_connection(profile, self.usb_finder)
        try:
            self.registry.set_connected(profile_id, check.connected)
        except (KeyError, sqlite3.Error):
            logger.exception("Could not store connection state of %r", profile.name)
        logger.info("Connection test for %r: %s", profile.name, check.message)
        return PrintResult(success=check.connected, message=check.message, printer_id=profile_id)

    def close(self) -> None:
        self.writer.close()
