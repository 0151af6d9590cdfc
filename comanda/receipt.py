"""Receipt layouts for orders, table summaries and kitchen tickets."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable
from zoneinfo import ZoneInfo

from comanda.commands import Align, Receipt, Size
from comanda.config import (
    KITCHEN_CATEGORIES,
    RECEIPT_DATETIME_FORMAT,
    RECEIPT_FOOTER_LINES,
    RECEIPT_TIME_FORMAT,
    RECEIPT_TIMEZONE,
)
from comanda.consolidate import (
    consolidate_items,
    consolidated_subtotal,
    exclude_cancelled,
    total_quantity,
    total_service_charge,
)
from comanda.errors import MalformedAggregate
from comanda.models import LineItem, OrderAggregate, PrinterProfile, TableSummaryAggregate, format_currency, money

_TRAILING_FEED_LINES = 3


def format_timestamp(value: datetime, fmt: str = RECEIPT_DATETIME_FORMAT, tz_name: str = RECEIPT_TIMEZONE) -> str:
    """Render in the receipt timezone; naive values are taken as already local."""
    if value.tzinfo is not None:
        value = value.astimezone(ZoneInfo(tz_name))
    return value.strftime(fmt)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _check_items(items: Iterable[LineItem], owner: str) -> None:
    for item in items:
        if not (item.product_name or "").strip():
            raise MalformedAggregate(f"{owner} has an item without product name")
        if item.quantity <= 0:
            raise MalformedAggregate(f"{owner} item {item.product_name!r} has quantity {item.quantity}")
        if item.unit_price < 0:
            raise MalformedAggregate(f"{owner} item {item.product_name!r} has a negative price")


def validate_order(order: OrderAggregate) -> None:
    owner = f"order for table {order.table_number}"
    if order.table_number is None or order.table_number <= 0:
        raise MalformedAggregate(f"order has invalid table number {order.table_number!r}")
    if not (order.waiter_name or "").strip():
        raise MalformedAggregate(f"{owner} has no waiter")
    if order.created_at is None:
        raise MalformedAggregate(f"{owner} has no creation time")
    _check_items(order.active_items, owner)

    computed = order.computed_subtotal
    if order.subtotal is not None and order.subtotal != computed:
        raise MalformedAggregate(
            f"{owner} subtotal {format_currency(order.subtotal)} does not match items {format_currency(computed)}"
        )
    expected_total = money(order.effective_subtotal + order.service_charge)
    if order.final_total is not None and order.final_total != expected_total:
        raise MalformedAggregate(
            f"{owner} total {format_currency(order.final_total)} does not match "
            f"subtotal plus service {format_currency(expected_total)}"
        )


def format_order_receipt(order: OrderAggregate) -> Receipt:
    """Single order ticket with prices and totals."""
    validate_order(order)
    receipt = Receipt()
    receipt.init()
    receipt.align(Align.CENTER).bold(True).size(Size.DOUBLE).text("PEDIDO")
    receipt.normal()
    receipt.rule()
    receipt.align(Align.LEFT)
    receipt.text(f"Mesa: {order.table_number}")
    receipt.text(f"Garcom: {order.waiter_name}")
    receipt.text(f"Data: {format_timestamp(order.created_at)}")
    receipt.rule()
    receipt.text("ITENS:")
    receipt.rule()

    for item in order.active_items:
        receipt.text(f"{item.quantity}x {item.product_name}")
        receipt.text(f"   {format_currency(item.unit_price)}")
        if item.observations:
            receipt.text(f"   Obs: {item.observations}")

    receipt.rule()
    receipt.text(f"Subtotal: {format_currency(order.effective_subtotal)}")
    receipt.text(f"Taxa Servico: {format_currency(order.service_charge)}")
    receipt.bold(True).size(Size.DOUBLE_HEIGHT).text(f"TOTAL: {format_currency(order.effective_total)}")
    receipt.normal()
    receipt.rule()
    receipt.feed(_TRAILING_FEED_LINES)
    receipt.cut()
    return receipt


def waiter_line(names: Iterable[str]) -> str | None:
    names = [name for name in names if name]
    if not names:
        return None
    if len(names) == 1:
        return f"Garcom: {names[0]}"
    return f"Garcons: {', '.join(names)}"


def format_table_summary_receipt(
    summary: TableSummaryAggregate,
    footer_lines: Iterable[str] = RECEIPT_FOOTER_LINES,
) -> Receipt:
    """Table closing ticket with every order merged by product and price."""
    if summary.table_number is None or summary.table_number <= 0:
        raise MalformedAggregate(f"table summary has invalid table number {summary.table_number!r}")
    orders = exclude_cancelled(summary.orders)
    for order in orders:
        _check_items(order.items, f"table {summary.table_number}")

    items = consolidate_items(orders)
    subtotal = consolidated_subtotal(items)
    service_charge = total_service_charge(orders)
    expected_total = money(subtotal + service_charge)
    if summary.current_total is not None and summary.current_total != expected_total:
        raise MalformedAggregate(
            f"table {summary.table_number} total {format_currency(summary.current_total)} does not match "
            f"items plus service {format_currency(expected_total)}"
        )
    total = summary.current_total if summary.current_total is not None else expected_total

    receipt = Receipt()
    receipt.init()
    receipt.align(Align.CENTER).size(Size.DOUBLE).bold(True).text("RESUMO DA MESA")
    receipt.normal()
    receipt.feed()
    receipt.double_rule()

    receipt.align(Align.LEFT).bold(True).text(f"Mesa: {summary.table_number}")
    receipt.normal()
    waiters = waiter_line(summary.waiter_names)
    if waiters:
        receipt.text(waiters)
    if summary.started_at is not None:
        receipt.text(f"Inicio: {format_timestamp(summary.started_at)}")
    if summary.ended_at is not None:
        receipt.text(f"Fim: {format_timestamp(summary.ended_at)}")
    receipt.feed()
    receipt.double_rule()

    receipt.bold(True).text("ITENS CONSUMIDOS:").bold(False)
    receipt.rule()
    for item in items:
        receipt.text(f"{item.total_quantity}x {item.product_name}")
        receipt.text(
            f"   {format_currency(item.unit_price)} x {item.total_quantity} = {format_currency(item.line_total)}"
        )
    receipt.feed()

    receipt.double_rule()
    receipt.align(Align.RIGHT)
    receipt.text(f"Subtotal: {format_currency(subtotal)}")
    if service_charge > 0:
        receipt.text(f"Taxa Servico: {format_currency(service_charge)}")
    receipt.double_rule()
    receipt.feed()

    receipt.align(Align.CENTER).bold(True).size(Size.DOUBLE).text(f"TOTAL: {format_currency(total)}")
    receipt.normal()
    receipt.feed()
    receipt.align(Align.LEFT)
    receipt.double_rule()
    receipt.feed()

    receipt.align(Align.CENTER)
    receipt.text(f"Total de pedidos: {len(orders)}")
    receipt.text(f"Total de itens: {total_quantity(items)}")
    footer = list(footer_lines)
    if footer:
        receipt.feed()
        for line in footer:
            receipt.text(line)
    receipt.feed(_TRAILING_FEED_LINES)
    receipt.cut()
    return receipt


def kitchen_items(order: OrderAggregate, categories: Iterable[str] = KITCHEN_CATEGORIES) -> tuple[LineItem, ...]:
    """Items the kitchen has to prepare. An empty category list means every item."""
    wanted = {category.upper() for category in categories}
    if not wanted:
        return order.active_items
    return tuple(item for item in order.active_items if (item.category or "").upper() in wanted)


def format_kitchen_ticket(order: OrderAggregate, categories: Iterable[str] = KITCHEN_CATEGORIES) -> Receipt:
    """Kitchen copy: no prices, large item lines."""
    validate_order(order)
    items = kitchen_items(order, categories)
    if not items:
        raise MalformedAggregate(f"order for table {order.table_number} has no kitchen items")

    receipt = Receipt()
    receipt.init()
    receipt.align(Align.CENTER).size(Size.DOUBLE).bold(True).text("PEDIDO COZINHA")
    receipt.normal()
    receipt.feed()
    receipt.rule()

    receipt.align(Align.LEFT)
    receipt.bold(True).text(f"Mesa: {order.table_number}").bold(False)
    receipt.text(f"Garcom: {order.waiter_name}")
    receipt.text(f"Hora: {format_timestamp(order.created_at, RECEIPT_TIME_FORMAT)}")
    receipt.feed()
    receipt.rule()
    receipt.bold(True).text("ITENS:").bold(False)
    receipt.rule()

    for item in items:
        receipt.size(Size.DOUBLE_HEIGHT).bold(True).text(f"{item.quantity}x {item.product_name}")
        receipt.normal()
        if item.observations:
            receipt.bold(True).text(f"   OBS: {item.observations}").bold(False)
        receipt.feed()

    receipt.rule()
    receipt.feed(_TRAILING_FEED_LINES)
    receipt.cut()
    return receipt


def format_cancellation_slip(
    item: LineItem,
    table_number: int,
    waiter_name: str,
    reason: str | None = None,
    when: datetime | None = None,
) -> Receipt:
    """Tells the kitchen an item was withdrawn."""
    _check_items([item], f"cancellation for table {table_number}")
    if table_number is None or table_number <= 0:
        raise MalformedAggregate(f"cancellation has invalid table number {table_number!r}")

    receipt = Receipt()
    receipt.init()
    receipt.align(Align.CENTER).bold(True).size(Size.DOUBLE).text("CANCELAMENTO")
    receipt.normal()
    receipt.feed()
    receipt.align(Align.LEFT)
    receipt.text(f"Mesa: {table_number}")
    receipt.text(f"Garcom: {waiter_name}")
    receipt.text(f"Data/Hora: {format_timestamp(when or _now())}")
    receipt.rule()
    receipt.feed()
    receipt.bold(True).text("X ITEM CANCELADO:").bold(False)
    receipt.text(f"{item.product_name[:20]:<20}{format_currency(item.unit_price)}")
    receipt.text(f"Qtd: {item.quantity}")
    if reason:
        receipt.text(f"Motivo: {reason}")
    receipt.double_rule()
    receipt.feed(_TRAILING_FEED_LINES)
    receipt.cut()
    return receipt


def format_test_page(profile: PrinterProfile, when: datetime | None = None) -> Receipt:
    receipt = Receipt()
    receipt.init()
    receipt.align(Align.CENTER).bold(True).size(Size.DOUBLE).text("TESTE DE IMPRESSAO")
    receipt.normal()
    receipt.feed()
    receipt.text(f"Impressora: {profile.name} ({profile.purpose.value})")
    receipt.text(f"Data/Hora: {format_timestamp(when or _now())}")
    receipt.feed()
    receipt.text("Impressora funcionando corretamente!")
    receipt.feed(_TRAILING_FEED_LINES)
    receipt.cut()
    return receipt
