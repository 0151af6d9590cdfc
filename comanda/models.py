"""Domain models for printer profiles and printable aggregates."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Any, Mapping

from comanda.errors import MalformedAggregate

_CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def money(value: Decimal | int | float | str) -> Decimal:
    """Quantize a monetary value to cents, going through str for floats."""
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, float):
        amount = Decimal(repr(value))
    else:
        amount = Decimal(value)
    return amount.quantize(_CENT, rounding=ROUND_HALF_UP)


def format_currency(value: Decimal | int | float | str) -> str:
    """Render ``R$ 0.00`` with a period separator regardless of host locale."""
    return f"R$ {money(value):.2f}"


class Purpose(str, Enum):
    KITCHEN = "kitchen"
    RECEPTION = "reception"


@dataclass(frozen=True)
class PrinterSettings:
    paper_width_mm: int = 80
    baud_rate: int = 9600


@dataclass
class PrinterProfile:
    """A configured thermal printer."""

    id: str
    name: str
    purpose: Purpose
    vendor_id: str
    product_id: str
    device_path: str | None = None
    is_connected: bool = False
    print_count: int = 0
    last_used_at: datetime | None = None
    settings: PrinterSettings = field(default_factory=PrinterSettings)

    @property
    def usb_ids(self) -> tuple[int, int]:
        from comanda.devices import parse_usb_id

        return (parse_usb_id(self.vendor_id), parse_usb_id(self.product_id))


@dataclass(frozen=True)
class LineItem:
    """One product row of an order."""

    product_name: str
    unit_price: Decimal
    quantity: int
    observations: str | None = None
    cancelled: bool = False
    product_id: str | None = None
    category: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "unit_price", money(self.unit_price))

    @property
    def product_key(self) -> str:
        return self.product_id if self.product_id is not None else self.product_name

    @property
    def line_total(self) -> Decimal:
        return money(self.unit_price * self.quantity)


@dataclass(frozen=True)
class ConsolidatedItem:
    """Items of a table merged by product and unit price."""

    product_name: str
    unit_price: Decimal
    total_quantity: int
    line_total: Decimal


@dataclass(frozen=True)
class OrderAggregate:
    """A fully resolved order as handed over by the order subsystem."""

    table_number: int
    waiter_name: str
    created_at: datetime
    items: tuple[LineItem, ...]
    subtotal: Decimal | None = None
    service_charge: Decimal = ZERO
    final_total: Decimal | None = None
    cancelled: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "items", tuple(self.items))
        object.__setattr__(self, "service_charge", money(self.service_charge))
        if self.subtotal is not None:
            object.__setattr__(self, "subtotal", money(self.subtotal))
        if self.final_total is not None:
            object.__setattr__(self, "final_total", money(self.final_total))

    @property
    def active_items(self) -> tuple[LineItem, ...]:
        return tuple(item for item in self.items if not item.cancelled)

    @property
    def computed_subtotal(self) -> Decimal:
        return money(sum((item.line_total for item in self.active_items), ZERO))

    @property
    def effective_subtotal(self) -> Decimal:
        return self.subtotal if self.subtotal is not None else self.computed_subtotal

    @property
    def effective_total(self) -> Decimal:
        if self.final_total is not None:
            return self.final_total
        return money(self.effective_subtotal + self.service_charge)

    def without_cancelled_items(self) -> OrderAggregate:
        if len(self.active_items) == len(self.items):
            return self
        return replace(self, items=self.active_items)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> OrderAggregate:
        """Decode an order payload from the web app (camelCase or snake_case keys)."""
        raw_items = _require(data, "items", "order")
        if not isinstance(raw_items, (list, tuple)):
            raise MalformedAggregate("order field 'items' must be a list")
        return cls(
            table_number=_as_int(_require(data, "tableNumber", "order"), "tableNumber"),
            waiter_name=str(_require(data, "waiterName", "order")),
            created_at=_as_datetime(_require(data, "createdAt", "order"), "createdAt"),
            items=tuple(_line_item_from_dict(item, idx) for idx, item in enumerate(raw_items)),
            subtotal=_optional_money(data, "subtotal"),
            service_charge=_optional_money(data, "serviceCharge") or ZERO,
            final_total=_optional_money(data, "finalTotal"),
            cancelled=bool(_lookup(data, "cancelled", False)) or _lookup(data, "status", "") == "CANCELLED",
        )


@dataclass(frozen=True)
class TableSummaryAggregate:
    """All orders of one table, printed as a single ticket on finalize."""

    table_number: int
    waiter_names: tuple[str, ...]
    orders: tuple[OrderAggregate, ...]
    current_total: Decimal | None = None
    started_at: datetime | None = None
    ended_at: datetime | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "waiter_names", tuple(self.waiter_names))
        object.__setattr__(self, "orders", tuple(self.orders))
        if self.current_total is not None:
            object.__setattr__(self, "current_total", money(self.current_total))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> TableSummaryAggregate:
        raw_orders = _require(data, "orders", "table")
        if not isinstance(raw_orders, (list, tuple)):
            raise MalformedAggregate("table field 'orders' must be a list")
        table_number = _as_int(_require(data, "tableNumber", "table"), "tableNumber")
        orders = []
        for order in raw_orders:
            if not isinstance(order, Mapping):
                raise MalformedAggregate("table orders must be objects")
            payload = dict(order)
            # Orders nested in a table payload usually omit the table number.
            payload.setdefault("tableNumber", table_number)
            orders.append(OrderAggregate.from_dict(payload))
        started_at = _lookup(data, "startedAt", None) or _lookup(data, "startTime", None)
        ended_at = _lookup(data, "endedAt", None) or _lookup(data, "endTime", None)
        return cls(
            table_number=table_number,
            waiter_names=tuple(str(name) for name in _lookup(data, "waiterNames", ())),
            orders=tuple(orders),
            current_total=_optional_money(data, "currentTotal"),
            started_at=_as_datetime(started_at, "startedAt") if started_at else None,
            ended_at=_as_datetime(ended_at, "endedAt") if ended_at else None,
        )


def _snake(key: str) -> str:
    return "".join(f"_{ch.lower()}" if ch.isupper() else ch for ch in key)


def _lookup(data: Mapping[str, Any], key: str, default: Any) -> Any:
    if key in data:
        return data[key]
    return data.get(_snake(key), default)


def _require(data: Mapping[str, Any], key: str, owner: str) -> Any:
    value = _lookup(data, key, None)
    if value is None or value == "":
        raise MalformedAggregate(f"{owner} field {key!r} is missing")
    return value


def _as_int(value: Any, key: str) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError, OverflowError):
        raise MalformedAggregate(f"field {key!r} must be an integer, got {value!r}") from None
    if isinstance(value, (float, Decimal)) and number != value:
        raise MalformedAggregate(f"field {key!r} must be a whole number, got {value!r}")
    return number


def _as_money(value: Any, key: str) -> Decimal:
    try:
        return money(value)
    except (InvalidOperation, TypeError, ValueError):
        raise MalformedAggregate(f"field {key!r} must be a number, got {value!r}") from None


def _optional_money(data: Mapping[str, Any], key: str) -> Decimal | None:
    value = _lookup(data, key, None)
    if value is None:
        return None
    return _as_money(value, key)


def _as_datetime(value: Any, key: str) -> datetime:
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        raise MalformedAggregate(f"field {key!r} is not an ISO timestamp: {value!r}") from None


def _line_item_from_dict(data: Any, index: int) -> LineItem:
    if not isinstance(data, Mapping):
        raise MalformedAggregate(f"item {index} must be an object")
    product = _lookup(data, "product", None)
    if isinstance(product, Mapping):
        name = product.get("name")
        product_id = product.get("id")
        category = product.get("category")
    else:
        name = _lookup(data, "productName", None)
        product_id = _lookup(data, "productId", None)
        category = _lookup(data, "category", None)
    if not name:
        raise MalformedAggregate(f"item {index} has no product name")
    price = _lookup(data, "unitPrice", None)
    if price is None:
        price = _lookup(data, "price", None)
    if price is None:
        raise MalformedAggregate(f"item {index} has no unit price")
    return LineItem(
        product_name=str(name),
        unit_price=_as_money(price, "unitPrice"),
        quantity=_as_int(_require(data, "quantity", f"item {index}"), "quantity"),
        observations=_lookup(data, "observations", None) or None,
        cancelled=bool(_lookup(data, "cancelled", False)),
        product_id=str(product_id) if product_id is not None else None,
        category=str(category) if category is not None else None,
    )
