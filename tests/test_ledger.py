import asyncio
from datetime import date

import pytest

from core.errors import Busy, IllegalOperation, InsufficientStock, InvalidInput, NotFound
from core.ledger import stock_status
from core.locks import KeyedLocks, item_lock
from core.models import ItemKey, MovementKind, StockMovement, StockStatus

from conftest import BFG, MIC, PIR, SOUTH, make_item


@pytest.mark.parametrize(
    "current, minimum, expected",
    [
        (40, 40, StockStatus.CRITICAL),
        (0, 0, StockStatus.CRITICAL),
        (41, 40, StockStatus.LOW),
        (80, 40, StockStatus.LOW),
        (81, 40, StockStatus.GOOD),
        (65, 40, StockStatus.LOW),
    ],
)
def test_stock_status_thresholds(current, minimum, expected):
    assert stock_status(current, minimum) == expected


def test_movement_sign_rules():
    StockMovement(item_key=BFG, quantity=5, kind=MovementKind.RECEIPT)
    StockMovement(item_key=BFG, quantity=-5, kind=MovementKind.ADJUSTMENT)
    StockMovement(item_key=BFG, quantity=5, kind=MovementKind.ADJUSTMENT)
    with pytest.raises(ValueError):
        StockMovement(item_key=BFG, quantity=-5, kind=MovementKind.RECEIPT)
    with pytest.raises(ValueError):
        StockMovement(item_key=BFG, quantity=5, kind=MovementKind.RESERVATION)
    with pytest.raises(ValueError):
        StockMovement(item_key=BFG, quantity=0, kind=MovementKind.ADJUSTMENT)


def test_item_key_parse_and_str():
    key = ItemKey.parse("A001/WH001/T-2055516-BFG")
    assert key == BFG
    assert str(key) == "A001/WH001/T-2055516-BFG"
    with pytest.raises(ValueError):
        ItemKey.parse("A001/T-2055516-BFG")


async def test_opening_stock_is_a_movement(stocked):
    item = await stocked.get_item(BFG)
    assert item.current_stock == 143
    movements = await stocked.list_movements(item_key=BFG)
    assert [(mv.kind, mv.quantity) for mv in movements] == [(MovementKind.ADJUSTMENT, 143)]


async def test_current_stock_equals_sum_of_movements(stocked):
    await stocked.adjust_stock(BFG, -20, reason="damaged")
    await stocked.receive_goods(BFG, 12, "Goodrich Supply", received_date=date(2024, 5, 1))
    await stocked.adjust_stock(BFG, 3)
    item = await stocked.get_item(BFG)
    movements = await stocked.list_movements(item_key=BFG)
    assert item.current_stock == sum(mv.quantity for mv in movements) == 138


async def test_receive_goods_note(stocked):
    mv = await stocked.receive_goods(MIC, 10, " Michelin Direct ", date(2024, 3, 2), notes=" pallet 4 ")
    assert mv.kind == MovementKind.RECEIPT
    assert mv.note == "Received from Michelin Direct on 2024-03-02: pallet 4"
    assert (await stocked.get_item(MIC)).current_stock == 107


async def test_receive_goods_rejects_bad_input(stocked):
    with pytest.raises(InvalidInput):
        await stocked.receive_goods(MIC, 0, "Michelin Direct", date(2024, 3, 2))
    with pytest.raises(InvalidInput):
        await stocked.receive_goods(MIC, 5, "  ", date(2024, 3, 2))


async def test_overdraw_is_rejected_and_nothing_changes(stocked):
    with pytest.raises(InsufficientStock) as exc:
        await stocked.adjust_stock(PIR, -66)
    assert exc.value.available == 65
    assert exc.value.requested == 66
    assert (await stocked.get_item(PIR)).current_stock == 65
    assert len(await stocked.list_movements(item_key=PIR)) == 1


async def test_apply_deltas_is_all_or_nothing(stocked):
    entries = [
        (BFG, -10, MovementKind.ADJUSTMENT, None, "a"),
        (MIC, -500, MovementKind.ADJUSTMENT, None, "b"),
    ]
    with pytest.raises(InsufficientStock):
        await stocked.ledger.apply_deltas(entries)
    assert (await stocked.get_item(BFG)).current_stock == 143
    assert (await stocked.get_item(MIC)).current_stock == 97


async def test_unknown_item(stocked):
    with pytest.raises(NotFound):
        await stocked.adjust_stock(ItemKey.parse("A009/WH009/NOPE"), 1)


async def test_duplicate_item_rejected(stocked):
    with pytest.raises(IllegalOperation):
        await stocked.create_item(make_item(BFG))


async def test_concurrent_withdrawals_never_go_negative(stocked):
    results = await asyncio.gather(
        *(stocked.adjust_stock(PIR, -10) for _ in range(10)),
        return_exceptions=True,
    )
    ok = [r for r in results if not isinstance(r, Exception)]
    failed = [r for r in results if isinstance(r, InsufficientStock)]
    assert len(ok) == 6
    assert len(failed) == 4
    item = await stocked.get_item(PIR)
    assert item.current_stock == 5
    assert item.current_stock == sum(mv.quantity for mv in await stocked.list_movements(item_key=PIR))


async def test_update_item_never_touches_current_stock(stocked):
    item = await stocked.update_item(BFG, minimum_stock=70, description="front axle")
    assert item.minimum_stock == 70
    assert item.description == "front axle"
    assert item.current_stock == 143
    with pytest.raises(InvalidInput):
        await stocked.update_item(BFG, current_stock=1)


async def test_list_items_search(stocked):
    found = await stocked.list_items(search="michelin")
    assert [it.key for it in found] == [MIC]


async def test_lock_timeout_raises_busy(stocked):
    async with stocked.locks.hold(item_lock(BFG)):
        with pytest.raises(Busy) as exc:
            await stocked.adjust_stock(BFG, -1)
    assert exc.value.retryable
    assert (await stocked.get_item(BFG)).current_stock == 143


async def test_locks_are_taken_in_sorted_order():
    locks = KeyedLocks(timeout=1)
    async with locks.hold("b", "a", "b") as names:
        assert names == ["a", "b"]
        assert locks.locked("a") and locks.locked("b")
    assert not locks.locked("a")


async def test_delete_item_only_when_untouched(stocked):
    fresh = make_item(SOUTH.item("T-NEW"))
    await stocked.create_item(fresh)
    await stocked.delete_item(fresh.key)
    with pytest.raises(NotFound):
        await stocked.get_item(fresh.key)
    with pytest.raises(NotFound):
        await stocked.delete_item(fresh.key)

    with pytest.raises(IllegalOperation):
        await stocked.delete_item(PIR)

    # back at zero, but the log still references it
    await stocked.adjust_stock(PIR, -65)
    with pytest.raises(IllegalOperation):
        await stocked.delete_item(PIR)
    assert (await stocked.get_item(PIR)).current_stock == 0
    assert len(await stocked.list_movements(item_key=PIR)) == 2
