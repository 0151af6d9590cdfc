import sqlite3
import threading
import time
from dataclasses import replace
from datetime import datetime
from decimal import Decimal

import pytest

from comanda.devices import DeviceResolver, StaticScanner
from comanda.errors import DeviceWriteFailed
from comanda.models import LineItem, OrderAggregate, Purpose
from comanda.persistence import ProfileStore
from comanda.printer import (
    STATUS_PRINT_FAILED,
    STATUS_PRINTED,
    STATUS_SKIPPED,
    DeviceWriter,
    PrintDispatcher,
    write_with_escpos,
)
from comanda.registry import PrinterRegistry

from conftest import CANDIDATES, SpyTransport, make_profile


def test_order_goes_to_reception_node(dispatcher, transport, registry, scenario_a_order):
    result = dispatcher.print_order(scenario_a_order)

    assert result.success
    assert result.device_path == "/dev/usb/lp0"
    assert transport.write_count == 1
    path, payload = transport.writes[0]
    assert path == "/dev/usb/lp0"
    assert b"TOTAL: R$ 40.90" in payload
    assert payload.startswith(b"\x1b@")
    assert payload.endswith(b"\x1dV\x00")
    assert result.bytes_written == len(payload)

    profile = registry.get("reception-1")
    assert profile.print_count == 1
    assert profile.last_used_at is not None
    assert profile.device_path == "/dev/usb/lp0"


def test_table_summary_prints_service_charge_total(dispatcher, transport, two_order_table):
    result = dispatcher.print_table_summary(two_order_table)

    assert result.success
    payload = transport.writes[0][1]
    assert b"Taxa Servico: R$ 8.50" in payload
    assert "2x Água Mineral".encode("latin-1") in payload


def test_no_connected_printer_writes_nothing(registry, transport, scenario_a_order):
    registry.set_connected("reception-1", False)
    dispatcher = PrintDispatcher(
        registry,
        DeviceResolver(StaticScanner(CANDIDATES), candidates=CANDIDATES),
        DeviceWriter(transport=transport),
    )

    result = dispatcher.print_order(scenario_a_order)
    dispatcher.close()

    assert not result.success
    assert result.error_kind == "no_printer_connected"
    assert result.message == "No reception printer is connected"
    assert transport.write_count == 0


def test_unresolved_device_path_writes_nothing(registry, transport, scenario_a_order):
    dispatcher = PrintDispatcher(
        registry,
        DeviceResolver(StaticScanner(), candidates=CANDIDATES),
        DeviceWriter(transport=transport),
    )

    result = dispatcher.print_order(scenario_a_order)
    dispatcher.close()

    assert not result.success
    assert result.error_kind == "device_path_unresolved"
    assert "/dev/usb/lp0" in result.message
    assert transport.write_count == 0
    assert registry.get("reception-1").print_count == 0


def test_malformed_order_is_reported_not_raised(dispatcher, transport, scenario_a_order):
    order = OrderAggregate(
        table_number=0,
        waiter_name="Joao",
        created_at=scenario_a_order.created_at,
        items=scenario_a_order.items,
    )

    result = dispatcher.print_order(order)

    assert not result.success
    assert result.error_kind == "malformed_aggregate"
    assert transport.write_count == 0


def test_transport_errors_become_write_failures(registry, scenario_a_order):
    transport = SpyTransport(fail_with=PermissionError("[Errno 13] Permission denied: '/dev/usb/lp0'"))
    dispatcher = PrintDispatcher(
        registry,
        DeviceResolver(StaticScanner(["/dev/usb/lp0"]), candidates=CANDIDATES),
        DeviceWriter(transport=transport),
    )

    result = dispatcher.print_order(scenario_a_order)
    dispatcher.close()

    assert not result.success
    assert result.error_kind == "device_write_failed"
    assert "Permission denied" in result.message
    assert registry.get("reception-1").print_count == 0


def test_stuck_write_times_out():
    release = threading.Event()

    def stuck(path, payload):
        release.wait(5)

    writer = DeviceWriter(transport=stuck, timeout=0.05)
    try:
        with pytest.raises(DeviceWriteFailed) as excinfo:
            writer.write("/dev/usb/lp0", b"x")
    finally:
        release.set()
        writer.close()

    assert "timed out" in excinfo.value.message


def test_queued_job_is_dropped_after_timeout():
    started = threading.Event()
    release = threading.Event()
    writes = []

    def slow(path, payload):
        if payload == b"first":
            started.set()
            release.wait(5)
        writes.append(payload)

    writer = DeviceWriter(transport=slow, timeout=0.05)
    first = threading.Thread(target=_write_ignoring_failure, args=(writer, b"first"))
    first.start()
    assert started.wait(1)
    with pytest.raises(DeviceWriteFailed):
        writer.write("/dev/usb/lp0", b"second")
    release.set()
    first.join()
    writer.close()

    assert b"second" not in writes


def _write_ignoring_failure(writer, payload):
    try:
        writer.write("/dev/usb/lp0", payload)
    except DeviceWriteFailed:
        pass


def test_writes_to_one_node_never_overlap():
    active = []
    overlaps = []
    order = []
    lock = threading.Lock()

    def transport(path, payload):
        with lock:
            active.append(payload)
            if len(active) > 1:
                overlaps.append(tuple(active))
        time.sleep(0.01)
        with lock:
            active.remove(payload)
            order.append(payload)

    writer = DeviceWriter(transport=transport, timeout=5)
    threads = [
        threading.Thread(target=writer.write, args=("/dev/usb/lp0", f"job-{n}".encode())) for n in range(8)
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    writer.close()

    assert overlaps == []
    assert len(order) == 8


def test_kitchen_ticket_goes_to_kitchen_node(dispatcher, transport):
    order = OrderAggregate(
        table_number=2,
        waiter_name="Ana",
        created_at=datetime(2024, 5, 10, 18, 0),
        items=(LineItem("Pastel", Decimal("9.00"), 2, category="PETISCOS"),),
    )

    result = dispatcher.print_kitchen_ticket(order)

    assert result.success
    assert transport.writes[0][0] == "/dev/usb/lp1"
    assert b"2x Pastel" in transport.writes[0][1]


def test_kitchen_ticket_without_kitchen_items_is_skipped(dispatcher, transport):
    order = OrderAggregate(
        table_number=2,
        waiter_name="Ana",
        created_at=datetime(2024, 5, 10, 18, 0),
        items=(LineItem("Cerveja", Decimal("12.00"), 1, category="BEBIDAS"),),
    )

    result = dispatcher.print_kitchen_ticket(order)

    assert result.success
    assert result.message == "No kitchen items to print"
    assert transport.write_count == 0


def test_cancellation_goes_to_kitchen(dispatcher, transport):
    result = dispatcher.print_cancellation(
        LineItem("Pastel", Decimal("9.00"), 1),
        table_number=2,
        waiter_name="Ana",
        reason="engano",
        when=datetime(2024, 5, 10, 18, 30),
    )

    assert result.success
    assert transport.writes[0][0] == "/dev/usb/lp1"
    assert b"Motivo: engano" in transport.writes[0][1]


def test_test_page_prints_on_disconnected_profile(dispatcher, transport, registry):
    registry.set_connected("kitchen-1", False)

    result = dispatcher.print_test_page("kitchen-1")

    assert result.success
    assert b"TESTE DE IMPRESSAO" in transport.writes[0][1]


def test_connection_test_updates_profile(registry, transport):
    dispatcher = PrintDispatcher(
        registry,
        DeviceResolver(StaticScanner(), candidates=CANDIDATES),
        DeviceWriter(transport=transport),
        usb_finder=lambda vid, pid: None,
    )

    result = dispatcher.test_connection("kitchen-1")
    dispatcher.close()

    assert not result.success
    assert not registry.get("kitchen-1").is_connected


def test_jobs_are_journaled(tmp_path, transport, scenario_a_order):
    store = ProfileStore(tmp_path / "comanda.db")
    registry = PrinterRegistry.from_store(store, seed=False)
    registry.add(make_profile(Purpose.RECEPTION))
    dispatcher = PrintDispatcher(
        registry,
        DeviceResolver(StaticScanner(["/dev/usb/lp0"]), candidates=CANDIDATES),
        DeviceWriter(transport=transport),
    )

    dispatcher.print_order(scenario_a_order)
    dispatcher.print_order(scenario_a_order, purpose=Purpose.KITCHEN)
    dispatcher.print_kitchen_ticket(scenario_a_order)
    dispatcher.close()

    statuses = [(job.kind, job.status) for job in registry.recent_jobs()]
    assert sorted(statuses) == sorted(
        [
            ("order_receipt", STATUS_PRINTED),
            ("order_receipt", STATUS_PRINT_FAILED),
            ("kitchen_ticket", STATUS_SKIPPED),
        ]
    )
    assert store.load_profiles()[0].print_count == 1


class LockedStore(ProfileStore):
    """A store whose writes fail the way a busy SQLite file does."""

    def save_profile(self, profile):
        raise sqlite3.OperationalError("database is locked")

    def record_print_job(self, kind, printer_id, status, message=""):
        raise sqlite3.OperationalError("database is locked")


def test_printed_ticket_stays_successful_when_bookkeeping_fails(tmp_path, transport, scenario_a_order):
    registry = PrinterRegistry([make_profile(Purpose.RECEPTION)], store=LockedStore(tmp_path / "comanda.db"))
    dispatcher = PrintDispatcher(
        registry,
        DeviceResolver(StaticScanner(["/dev/usb/lp0"]), candidates=CANDIDATES),
        DeviceWriter(transport=transport),
    )

    result = dispatcher.print_order(scenario_a_order)
    failed = dispatcher.print_order(scenario_a_order, purpose=Purpose.KITCHEN)
    skipped = dispatcher.print_kitchen_ticket(scenario_a_order)
    dispatcher.close()

    assert result.success
    assert result.device_path == "/dev/usb/lp0"
    assert transport.write_count == 1
    assert failed.error_kind == "no_printer_connected"
    assert skipped.success


def test_item_without_name_is_a_malformed_aggregate(dispatcher, transport, scenario_a_order):
    order = replace(scenario_a_order, items=(LineItem(None, Decimal("1"), 1),))

    result = dispatcher.print_order(order)

    assert not result.success
    assert result.error_kind == "malformed_aggregate"
    assert transport.write_count == 0


def test_formatter_bug_is_reported_as_failed_result(dispatcher, transport, scenario_a_order, monkeypatch):
    def broken(order):
        raise RuntimeError("layout exploded")

    monkeypatch.setattr("comanda.printer.format_order_receipt", broken)

    result = dispatcher.print_order(scenario_a_order)

    assert not result.success
    assert result.error_kind == "malformed_aggregate"
    assert "layout exploded" in result.message
    assert transport.write_count == 0


def test_unknown_printer_id_is_reported(dispatcher, transport):
    page = dispatcher.print_test_page("nope")
    check = dispatcher.test_connection("nope")

    assert not page.success
    assert page.error_kind == "unknown_printer"
    assert page.message == "Unknown printer 'nope'"
    assert not check.success
    assert check.error_kind == "unknown_printer"
    assert transport.write_count == 0


def test_escpos_transport_writes_payload_verbatim(tmp_path):
    node = tmp_path / "lp0"
    payload = b"\x1b@" + "Água".encode("latin-1") + b"\n\x1dV\x00"

    write_with_escpos(str(node), payload)

    assert node.read_bytes() == payload


def test_missing_node_becomes_write_failure(tmp_path):
    writer = DeviceWriter(timeout=2.0)
    missing = str(tmp_path / "usb" / "lp9")
    try:
        with pytest.raises(DeviceWriteFailed) as excinfo:
            writer.write(missing, b"\x1b@")
    finally:
        writer.close()

    assert excinfo.value.device_path == missing
