import threading
from datetime import datetime
from decimal import Decimal
from typing import List, Tuple

import pytest

from comanda.devices import DeviceResolver, StaticScanner
from comanda.models import LineItem, OrderAggregate, PrinterProfile, Purpose, TableSummaryAggregate
from comanda.printer import DeviceWriter, PrintDispatcher
from comanda.registry import PrinterRegistry

CANDIDATES = (
    "/dev/usb/lp0",
    "/dev/usb/lp1",
    "/dev/usb/lp2",
    "/dev/usb/lp3",
    "/dev/lp0",
    "/dev/lp1",
    "/dev/lp2",
    "/dev/lp3",
)


class SpyTransport:
    """
    Records writes instead of touching a device node.
    """

    def __init__(self, fail_with: Exception | None = None):
        self.fail_with = fail_with
        self.writes: List[Tuple[str, bytes]] = []
        self._lock = threading.Lock()

    def __call__(self, device_path: str, payload: bytes) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        with self._lock:
            self.writes.append((device_path, payload))

    @property
    def write_count(self) -> int:
        return len(self.writes)


def make_profile(purpose=Purpose.KITCHEN, **overrides) -> PrinterProfile:
    values = dict(
        id=f"{purpose.value}-1",
        name=f"{purpose.value.title()} printer",
        purpose=purpose,
        vendor_id="0x6868",
        product_id="0x0200",
        is_connected=True,
    )
    values.update(overrides)
    return PrinterProfile(**values)


@pytest.fixture()
def scenario_a_order() -> OrderAggregate:
    """
    X-Burger and two Coca-Colas, no service charge.
    """
    return OrderAggregate(
        table_number=7,
        waiter_name="Joao",
        created_at=datetime(2024, 5, 10, 20, 15, 30),
        items=(
            LineItem("X-Burger", Decimal("28.90"), 1, product_id="p-burger"),
            LineItem("Coca-Cola", Decimal("6.00"), 2, product_id="p-coke"),
        ),
        service_charge=Decimal("0"),
    )


@pytest.fixture()
def two_order_table() -> TableSummaryAggregate:
    """
    Two orders of one table, each with one bottle of water and a service charge.
    """
    first = OrderAggregate(
        table_number=3,
        waiter_name="Ana",
        created_at=datetime(2024, 5, 10, 19, 0),
        items=(LineItem("Água Mineral", Decimal("4.00"), 1, product_id="p-water"),),
        service_charge=Decimal("5.00"),
    )
    second = OrderAggregate(
        table_number=3,
        waiter_name="Bruno",
        created_at=datetime(2024, 5, 10, 19, 30),
        items=(LineItem("Água Mineral", Decimal("4.00"), 1, product_id="p-water"),),
        service_charge=Decimal("3.50"),
    )
    return TableSummaryAggregate(
        table_number=3,
        waiter_names=("Ana", "Bruno"),
        orders=(first, second),
        current_total=Decimal("16.50"),
    )


@pytest.fixture()
def transport() -> SpyTransport:
    return SpyTransport()


@pytest.fixture()
def registry() -> PrinterRegistry:
    return PrinterRegistry(
        [
            make_profile(Purpose.KITCHEN),
            make_profile(Purpose.RECEPTION),
        ]
    )


@pytest.fixture()
def dispatcher(registry, transport):
    resolver = DeviceResolver(StaticScanner(["/dev/usb/lp0", "/dev/usb/lp1"]), candidates=CANDIDATES)
    writer = DeviceWriter(transport=transport, timeout=2.0)
    dispatcher = PrintDispatcher(registry, resolver, writer)
    yield dispatcher
    dispatcher.close()
