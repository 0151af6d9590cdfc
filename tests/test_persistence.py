from datetime import datetime, timezone

import pytest

from comanda.errors import NoPrinterConnected
from comanda.models import PrinterSettings, Purpose
from comanda.persistence import ProfileStore
from comanda.registry import PrinterRegistry

from conftest import make_profile


@pytest.fixture()
def store(tmp_path):
    store = ProfileStore(tmp_path / "db" / "comanda.db")
    store.bootstrap_schema()
    return store


def test_profile_round_trip(store):
    profile = make_profile(
        Purpose.KITCHEN,
        device_path="/dev/usb/lp1",
        print_count=4,
        last_used_at=datetime(2024, 5, 10, 20, 0, tzinfo=timezone.utc),
        settings=PrinterSettings(paper_width_mm=58, baud_rate=19200),
    )

    store.save_profile(profile)

    assert store.load_profiles() == [profile]


def test_profiles_keep_catalog_order_on_update(store):
    store.save_profile(make_profile(Purpose.RECEPTION, id="b", name="Balcao"))
    store.save_profile(make_profile(Purpose.KITCHEN, id="a", name="Cozinha"))
    store.save_profile(make_profile(Purpose.RECEPTION, id="b", name="Balcao", print_count=9))

    profiles = store.load_profiles()

    assert [profile.id for profile in profiles] == ["b", "a"]
    assert profiles[0].print_count == 9


def test_delete_profile(store):
    store.save_profile(make_profile(Purpose.KITCHEN))
    store.delete_profile("kitchen-1")

    assert store.load_profiles() == []


def test_print_job_journal_newest_first(store):
    store.record_print_job("order_receipt", "reception-1", "PRINTED", "ok")
    store.record_print_job("kitchen_ticket", None, "PRINT_FAILED", "No kitchen printer is connected")

    jobs = store.recent_jobs()

    assert [job.kind for job in jobs] == ["kitchen_ticket", "order_receipt"]
    assert jobs[0].printer_id is None
    assert store.recent_jobs(limit=1)[0].kind == "kitchen_ticket"


def test_registry_seeds_empty_store(tmp_path):
    store = ProfileStore(tmp_path / "comanda.db")

    registry = PrinterRegistry.from_store(store)

    purposes = [profile.purpose for profile in registry.profiles()]
    assert purposes == [Purpose.KITCHEN, Purpose.RECEPTION]
    assert len(store.load_profiles()) == 2
    assert len(PrinterRegistry.from_store(store).profiles()) == 2


def test_registry_picks_first_connected_profile():
    registry = PrinterRegistry(
        [
            make_profile(Purpose.KITCHEN, id="k1", name="Cozinha 1", is_connected=False),
            make_profile(Purpose.KITCHEN, id="k2", name="Cozinha 2"),
            make_profile(Purpose.KITCHEN, id="k3", name="Cozinha 3"),
        ]
    )

    assert registry.connected_for(Purpose.KITCHEN).id == "k2"
    with pytest.raises(NoPrinterConnected) as excinfo:
        registry.connected_for(Purpose.RECEPTION)
    assert excinfo.value.message == "No reception printer is connected"


def test_registry_hands_out_copies():
    registry = PrinterRegistry([make_profile(Purpose.KITCHEN)])

    copy = registry.get("kitchen-1")
    copy.print_count = 100

    assert registry.get("kitchen-1").print_count == 0


def test_registry_rejects_duplicate_names():
    registry = PrinterRegistry([make_profile(Purpose.KITCHEN, name="Cozinha")])

    with pytest.raises(ValueError):
        registry.add(make_profile(Purpose.RECEPTION, name="Cozinha"))


def test_record_print_and_connection_state_are_persisted(store):
    registry = PrinterRegistry.from_store(store, seed=False)
    registry.add(make_profile(Purpose.KITCHEN, is_connected=False))
    when = datetime(2024, 5, 10, 20, 0, tzinfo=timezone.utc)

    registry.set_connected("kitchen-1", True, when=when)
    registry.record_print("kitchen-1", device_path="/dev/usb/lp1", when=when)
    registry.set_device_path("kitchen-1", "")

    stored = store.load_profiles()[0]
    assert stored.is_connected
    assert stored.print_count == 1
    assert stored.last_used_at == when
    assert stored.device_path is None


def test_unknown_profile():
    with pytest.raises(KeyError):
        PrinterRegistry().get("missing")
