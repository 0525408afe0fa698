"""Stock depletion forecasting.

Pure functions over numbers; nothing here reads or writes storage. The
service feeds them an item's stock levels and a usage rate, either given by
the caller or derived from the movement log.
"""

import math
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Iterable, Iterator, Optional, Tuple

from core.errors import InvalidInput
from core.models import OUTBOUND_KINDS, StockMovement

CRITICAL_SHARE = 0.3
WARNING_SHARE = 0.7


class ForecastStatus(str, Enum):
    CRITICAL = "critical"
    WARNING = "warning"
    GOOD = "good"


def _check_horizon(horizon_days: int) -> None:
    if horizon_days <= 0:
        raise InvalidInput("horizon_days must be > 0", horizon_days=horizon_days)


def days_until_minimum(current_stock: float, minimum_stock: float, daily_usage: float) -> Optional[float]:
    """Days until stock reaches the minimum; ``None`` when nothing is used."""
    if daily_usage <= 0:
        return None
    return (current_stock - minimum_stock) / daily_usage


def classify(current_stock: float, minimum_stock: float, daily_usage: float, horizon_days: int) -> ForecastStatus:
    _check_horizon(horizon_days)
    days = days_until_minimum(current_stock, minimum_stock, daily_usage)
    if days is None:
        return ForecastStatus.GOOD
    if days < CRITICAL_SHARE * horizon_days:
        return ForecastStatus.CRITICAL
    if days < WARNING_SHARE * horizon_days:
        return ForecastStatus.WARNING
    return ForecastStatus.GOOD


class ProjectedCurve:
    """``(day, projected_stock)`` for day 1..horizon. Iterating again starts over."""

    def __init__(self, current_stock: float, daily_usage: float, horizon_days: int):
        _check_horizon(horizon_days)
        self.current_stock = current_stock
        self.daily_usage = daily_usage
        self.horizon_days = horizon_days

    def __iter__(self) -> Iterator[Tuple[int, float]]:
        for day in range(1, self.horizon_days + 1):
            yield day, max(0, self.current_stock - self.daily_usage * day)

    def __len__(self) -> int:
        return self.horizon_days


def projected_curve(current_stock: float, daily_usage: float, horizon_days: int) -> ProjectedCurve:
    return ProjectedCurve(current_stock, daily_usage, horizon_days)


def restock_date(
    today: date, current_stock: float, minimum_stock: float, daily_usage: float
) -> Optional[date]:
    """First day stock is at or below the minimum.

    ``None`` when nothing is used, or when that day is past ``date.max``.
    """
    days = days_until_minimum(current_stock, minimum_stock, daily_usage)
    if days is None or not math.isfinite(days):
        return None
    days = max(0, math.floor(days))
    if days > (date.max - today).days:
        return None
    return today + timedelta(days=days)


def daily_usage_from(
    movements: Iterable[StockMovement], lookback_days: int, now: Optional[datetime] = None
) -> float:
    """Mean outbound quantity per day over the last ``lookback_days``."""
    if lookback_days <= 0:
        raise InvalidInput("lookback_days must be > 0", lookback_days=lookback_days)
    now = now or datetime.now(timezone.utc)
    since = now - timedelta(days=lookback_days)
    used = 0
    for mv in movements:
        created = mv.created_at if mv.created_at.tzinfo else mv.created_at.replace(tzinfo=timezone.utc)
        if mv.kind in OUTBOUND_KINDS and mv.quantity < 0 and since <= created <= now:
            used += -mv.quantity
    return used / lookback_days


@dataclass
class Forecast:
    current_stock: int
    minimum_stock: int
    daily_usage: float
    horizon_days: int
    status: ForecastStatus
    days_until_minimum: Optional[float]
    restock_date: Optional[date]
    curve: ProjectedCurve


def build_forecast(
    current_stock: int,
    minimum_stock: int,
    daily_usage: float,
    horizon_days: int,
    today: Optional[date] = None,
) -> Forecast:
    today = today or date.today()
    return Forecast(
        current_stock=current_stock,
        minimum_stock=minimum_stock,
        daily_usage=daily_usage,
        horizon_days=horizon_days,
        status=classify(current_stock, minimum_stock, daily_usage, horizon_days),
        days_until_minimum=days_until_minimum(current_stock, minimum_stock, daily_usage),
        restock_date=restock_date(today, current_stock, minimum_stock, daily_usage),
        curve=projected_curve(current_stock, daily_usage, horizon_days),
    )
