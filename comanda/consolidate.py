"""Merge line items of a table's orders into one list per product and price."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from comanda.models import ZERO, ConsolidatedItem, OrderAggregate, money


@dataclass
class _Group:
    product_name: str
    unit_price: Decimal
    total_quantity: int
    line_total: Decimal


def exclude_cancelled(orders: Iterable[OrderAggregate]) -> tuple[OrderAggregate, ...]:
    """Drop cancelled orders and cancelled items. Applying it twice changes nothing."""
    kept: list[OrderAggregate] = []
    for order in orders:
        if order.cancelled:
            continue
        kept.append(order.without_cancelled_items())
    return tuple(kept)


def consolidate_items(orders: Iterable[OrderAggregate]) -> list[ConsolidatedItem]:
    """
    Group items by (product, unit price) in first-seen order.

    A product sold at two prices during one session keeps two lines.
    """
    groups: dict[tuple[str, Decimal], _Group] = {}
    for order in exclude_cancelled(orders):
        for item in order.items:
            key = (item.product_key, item.unit_price)
            group = groups.get(key)
            if group is None:
                groups[key] = _Group(
                    product_name=item.product_name,
                    unit_price=item.unit_price,
                    total_quantity=item.quantity,
                    line_total=item.line_total,
                )
                continue
            group.total_quantity += item.quantity
            group.line_total += item.line_total

    return [
        ConsolidatedItem(
            product_name=group.product_name,
            unit_price=group.unit_price,
            total_quantity=group.total_quantity,
            line_total=money(group.line_total),
        )
        for group in groups.values()
    ]


def consolidated_subtotal(items: Iterable[ConsolidatedItem]) -> Decimal:
    return money(sum((item.line_total for item in items), ZERO))


def total_service_charge(orders: Iterable[OrderAggregate]) -> Decimal:
    return money(sum((order.service_charge for order in exclude_cancelled(orders)), ZERO))


def total_quantity(items: Iterable[ConsolidatedItem]) -> int:
    return sum(item.total_quantity for item in items)

