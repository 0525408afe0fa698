from datetime import date, datetime, timedelta, timezone

import pytest

from core.errors import InvalidInput
from core.forecast import (
    ForecastStatus,
    build_forecast,
    classify,
    daily_usage_from,
    days_until_minimum,
    projected_curve,
    restock_date,
)
from core.models import MovementKind, StockMovement

from conftest import PIR


def test_sample_tyre_is_critical():
    # (65 - 40) / 7 = 3.57 days, under 30% of a 30 day horizon
    assert classify(65, 40, 7, 30) == ForecastStatus.CRITICAL


@pytest.mark.parametrize(
    "current, expected",
    [
        (40, ForecastStatus.CRITICAL),
        (84, ForecastStatus.CRITICAL),
        (86, ForecastStatus.WARNING),
        (144, ForecastStatus.WARNING),
        (146, ForecastStatus.GOOD),
    ],
)
def test_classify_thresholds(current, expected):
    # minimum 40, 5/day, horizon 30: critical below 9 days, warning below 21
    assert classify(current, 40, 5, 30) == expected


def test_classify_is_monotonic_in_stock():
    rank = {ForecastStatus.CRITICAL: 0, ForecastStatus.WARNING: 1, ForecastStatus.GOOD: 2}
    seen = [rank[classify(current, 40, 5, 30)] for current in range(0, 300)]
    assert seen == sorted(seen)


def test_zero_usage_is_good():
    assert classify(0, 40, 0, 30) == ForecastStatus.GOOD
    assert days_until_minimum(10, 40, 0) is None
    assert restock_date(date(2024, 1, 1), 10, 40, 0) is None


def test_horizon_must_be_positive():
    with pytest.raises(InvalidInput):
        classify(65, 40, 7, 0)
    with pytest.raises(InvalidInput):
        projected_curve(65, 7, -1)


def test_curve_is_restartable_and_floored():
    curve = projected_curve(20, 7, 5)
    first = list(curve)
    assert first == [(1, 13), (2, 6), (3, 0), (4, 0), (5, 0)]
    assert list(curve) == first
    assert len(curve) == 5


def test_restock_date_rounds_down():
    assert restock_date(date(2024, 7, 18), 65, 40, 7) == date(2024, 7, 21)
    # already below minimum: restock today
    assert restock_date(date(2024, 7, 18), 30, 40, 7) == date(2024, 7, 18)


def test_build_forecast():
    fc = build_forecast(143, 50, 5, 30, today=date(2024, 7, 14))
    assert fc.status == ForecastStatus.WARNING
    assert fc.days_until_minimum == pytest.approx(18.6)
    assert fc.restock_date == date(2024, 8, 1)
    assert len(list(fc.curve)) == 30


def test_daily_usage_from_movements():
    now = datetime(2024, 7, 29, tzinfo=timezone.utc)

    def mv(qty, kind, days_ago):
        return StockMovement(item_key=PIR, quantity=qty, kind=kind, created_at=now - timedelta(days=days_ago))

    movements = [
        mv(100, MovementKind.RECEIPT, 3),
        mv(-14, MovementKind.RESERVATION, 2),
        mv(-7, MovementKind.TRANSFER_OUT, 10),
        mv(-7, MovementKind.ADJUSTMENT, 20),
        mv(5, MovementKind.ADJUSTMENT, 1),
        mv(-50, MovementKind.RESERVATION, 40),
    ]
    assert daily_usage_from(movements, 28, now=now) == pytest.approx(1.0)
    assert daily_usage_from([], 28, now=now) == 0
    with pytest.raises(InvalidInput):
        daily_usage_from(movements, 0, now=now)


async def test_service_forecast_with_explicit_usage(stocked):
    fc = await stocked.forecast_for(PIR, horizon_days=30, daily_usage=7, today=date(2024, 7, 18))
    assert fc.status == ForecastStatus.CRITICAL
    assert fc.current_stock == 65
    assert fc.restock_date == date(2024, 7, 21)


async def test_service_forecast_from_history(stocked):
    await stocked.adjust_stock(PIR, -28)
    fc = await stocked.forecast_for(PIR)
    assert fc.daily_usage == pytest.approx(1.0)
    assert fc.horizon_days == 30
    # 37 in stock, minimum 40
    assert fc.status == ForecastStatus.CRITICAL


async def test_service_forecast_rejects_negative_usage(stocked):
    with pytest.raises(InvalidInput):
        await stocked.forecast_for(PIR, daily_usage=-1)


def test_restock_date_past_calendar_end_is_none():
    today = date(2026, 10, 19)
    assert restock_date(today, 1_000_000, 0, 1 / 28) is None
    fc = build_forecast(1_000_000, 0, 1 / 28, 30, today=today)
    assert fc.restock_date is None
    assert fc.status == ForecastStatus.GOOD
    # last representable day still resolves
    assert restock_date(date.max - timedelta(days=2), 12, 0, 6) == date.max


def test_restock_date_with_non_finite_usage_is_none():
    assert restock_date(date(2024, 1, 1), 65, 40, float("nan")) is None


@pytest.mark.parametrize("usage", [float("nan"), float("inf")])
async def test_service_forecast_rejects_non_finite_usage(stocked, usage):
    with pytest.raises(InvalidInput):
        await stocked.forecast_for(PIR, daily_usage=usage)
