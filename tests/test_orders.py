import asyncio
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from core.errors import IllegalTransition, InsufficientStock, InvalidInput, NotFound, UnknownStatus
from core.models import MovementKind, OrderStatus
from core.service import InventoryService

from conftest import BFG, PIR

LINES = [
    {"description": "Pirelli 215/70/R16 Sport", "quantity": 4, "unit_price": "129.90"},
    {"description": "Fitting", "quantity": 4, "unit_price": Decimal("15")},
]


async def _order(service):
    return await service.create_order("PO-1001", date(2024, 6, 3), "Fleet Motors", LINES, customer_address="12 Depot Rd")


async def test_create_order_totals(stocked):
    order = await _order(stocked)
    assert order.status == OrderStatus.PENDING_DELIVERY
    assert [ln.line_total for ln in order.lines] == [Decimal("519.60"), Decimal("60")]
    assert order.total_amount == Decimal("579.60")
    assert order.status_history[0].note == "Order created"


async def test_create_order_validation(stocked):
    with pytest.raises(InvalidInput):
        await stocked.create_order("PO-1", date(2024, 6, 3), "Fleet Motors", [])
    with pytest.raises(InvalidInput):
        await stocked.create_order("PO-1", date(2024, 6, 3), "  ", LINES)
    with pytest.raises(InvalidInput):
        await stocked.create_order(
            "PO-1", date(2024, 6, 3), "Fleet Motors", [{"description": "x", "quantity": 1, "unit_price": "-1"}]
        )


async def test_permissive_status_changes(stocked):
    order = await _order(stocked)
    order = await stocked.update_order_status(order.id, "done")
    order = await stocked.update_order_status(order.id, "pending-delivery", note="customer reopened")
    assert order.status == OrderStatus.PENDING_DELIVERY
    stored = await stocked.get_order(order.id)
    assert [r.status for r in stored.status_history] == ["pending-delivery", "done", "pending-delivery"]
    assert stored.status_history[-1].note == "customer reopened"


async def test_unknown_order_status(stocked):
    order = await _order(stocked)
    with pytest.raises(UnknownStatus):
        await stocked.update_order_status(order.id, "lost")
    assert len((await stocked.get_order(order.id)).status_history) == 1


async def test_strict_status_changes(repository):
    service = InventoryService(repository, lock_timeout=0.5, strict_order_transitions=True)
    order = await _order(service)
    await service.update_order_status(order.id, "delivery")
    with pytest.raises(IllegalTransition):
        await service.update_order_status(order.id, "pending-delivery")
    order = await service.update_order_status(order.id, "done")
    assert order.status == OrderStatus.DONE
    with pytest.raises(IllegalTransition):
        await service.update_order_status(order.id, "delivery")
    assert len((await service.get_order(order.id)).status_history) == 3


async def test_reserve_for_order(stocked):
    order = await _order(stocked)
    mv = await stocked.reserve_for_order(order.id, PIR, 4)
    assert mv.kind == MovementKind.RESERVATION
    assert mv.quantity == -4
    assert mv.correlation_id == str(order.id)
    assert mv.note == "PO PO-1001"
    assert (await stocked.get_item(PIR)).current_stock == 61

    with pytest.raises(InsufficientStock):
        await stocked.reserve_for_order(order.id, PIR, 62)
    with pytest.raises(InvalidInput):
        await stocked.reserve_for_order(order.id, PIR, 0)
    with pytest.raises(NotFound):
        await stocked.reserve_for_order(uuid4(), BFG, 1)
    assert (await stocked.get_item(BFG)).current_stock == 143


async def test_delete_order_keeps_movements(stocked):
    order = await _order(stocked)
    await stocked.reserve_for_order(order.id, PIR, 2)
    await stocked.update_order_status(order.id, "delivery")
    await stocked.delete_order(order.id)
    with pytest.raises(NotFound):
        await stocked.get_order(order.id)
    assert len(await stocked.list_movements(correlation_id=str(order.id))) == 1
    with pytest.raises(NotFound):
        await stocked.delete_order(order.id)


async def test_list_orders_by_status(stocked):
    a = await _order(stocked)
    b = await _order(stocked)
    await stocked.update_order_status(b.id, "pending-invoice")
    assert [o.id for o in await stocked.list_orders(status=OrderStatus.PENDING_INVOICE)] == [b.id]
    assert {o.id for o in await stocked.list_orders()} == {a.id, b.id}


async def test_concurrent_status_updates_are_serialized(stocked):
    order = await _order(stocked)
    targets = ["delivery", "pending-invoice", "done", "delivery"]

    results = await asyncio.gather(*(stocked.update_order_status(order.id, s) for s in targets))

    # each caller saw every update that ran before it
    assert sorted(len(o.status_history) for o in results) == [2, 3, 4, 5]
    stored = await stocked.get_order(order.id)
    assert len(stored.status_history) == 5
    assert sorted(r.status for r in stored.status_history[1:]) == sorted(targets)
    assert stored.status.value == stored.status_history[-1].status
