from datetime import date, datetime
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, field_validator

from core.forecast import Forecast
from core.ledger import stock_status
from core.models import InventoryItem, ItemKey, StockMovement


def strip_code(v: str) -> str:
    v = (v or "").strip()
    if not v:
        raise ValueError("field is required")
    if "/" in v:
        raise ValueError("'/' is not allowed in codes")
    return v


class ItemKeyIn(BaseModel):
    plant: str
    storage_location: str
    material_code: str

    @field_validator("plant", "storage_location", "material_code")
    @classmethod
    def _codes(cls, v: str) -> str:
        return strip_code(v)

    def to_key(self) -> ItemKey:
        return ItemKey(plant=self.plant, storage_location=self.storage_location, material_code=self.material_code)


class InventoryItemCreate(ItemKeyIn):
    plant_name: str = ""
    material_description: str = ""
    old_material_no: str = ""
    description: str = ""
    total_stock: int = 0
    minimum_stock: int = 0
    opening_stock: int = 0

    @field_validator("plant_name", "material_description", "old_material_no", "description")
    @classmethod
    def _strip_text(cls, v: Optional[str]) -> str:
        return (v or "").strip()

    @field_validator("total_stock", "minimum_stock", "opening_stock")
    @classmethod
    def _non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("must be >= 0")
        return v

    def to_item(self) -> InventoryItem:
        return InventoryItem(
            key=self.to_key(),
            plant_name=self.plant_name,
            material_description=self.material_description,
            old_material_no=self.old_material_no,
            description=self.description,
            total_stock=self.total_stock,
            minimum_stock=self.minimum_stock,
        )


class InventoryItemUpdate(BaseModel):
    plant_name: Optional[str] = None
    material_description: Optional[str] = None
    old_material_no: Optional[str] = None
    description: Optional[str] = None
    total_stock: Optional[int] = None
    minimum_stock: Optional[int] = None

    @field_validator("plant_name", "material_description", "old_material_no", "description")
    @classmethod
    def _strip_optional(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip()

    @field_validator("total_stock", "minimum_stock")
    @classmethod
    def _non_negative_optional(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 0:
            raise ValueError("must be >= 0")
        return v


class ReceiveGoodsRequest(ItemKeyIn):
    quantity: int
    vendor: str
    received_date: Optional[date] = None
    notes: Optional[str] = None

    @field_validator("quantity")
    @classmethod
    def _quantity_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("quantity must be > 0")
        return v

    @field_validator("vendor")
    @classmethod
    def _strip_required(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("vendor is required")
        return v

    @field_validator("notes")
    @classmethod
    def _strip_nullable(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None


class StockAdjustmentRequest(ItemKeyIn):
    quantity_delta: int
    reason: Optional[str] = None

    @field_validator("quantity_delta")
    @classmethod
    def _non_zero(cls, v: int) -> int:
        if v == 0:
            raise ValueError("quantity_delta must not be zero")
        return v

    @field_validator("reason")
    @classmethod
    def _strip_nullable(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None


class InventoryItemOut(BaseModel):
    plant: str
    storage_location: str
    material_code: str
    plant_name: str
    material_description: str
    old_material_no: str
    description: str
    total_stock: int
    current_stock: int
    minimum_stock: int
    status: Literal["good", "low", "critical"]

    @classmethod
    def from_item(cls, item: InventoryItem) -> "InventoryItemOut":
        return cls(
            plant=item.key.plant,
            storage_location=item.key.storage_location,
            material_code=item.key.material_code,
            plant_name=item.plant_name,
            material_description=item.material_description,
            old_material_no=item.old_material_no,
            description=item.description,
            total_stock=item.total_stock,
            current_stock=item.current_stock,
            minimum_stock=item.minimum_stock,
            status=stock_status(item.current_stock, item.minimum_stock).value,
        )


class MovementOut(BaseModel):
    id: UUID
    item_key: str
    quantity: int
    kind: str
    created_at: datetime
    correlation_id: Optional[str] = None
    note: Optional[str] = None

    @classmethod
    def from_movement(cls, mv: StockMovement) -> "MovementOut":
        return cls(
            id=mv.id,
            item_key=str(mv.item_key),
            quantity=mv.quantity,
            kind=mv.kind.value,
            created_at=mv.created_at,
            correlation_id=mv.correlation_id,
            note=mv.note,
        )


class CurvePoint(BaseModel):
    day: int
    projected_stock: float


class ForecastOut(BaseModel):
    item_key: str
    current_stock: int
    minimum_stock: int
    daily_usage: float
    horizon_days: int
    status: Literal["critical", "warning", "good"]
    days_until_minimum: Optional[float] = None
    restock_date: Optional[date] = None
    curve: List[CurvePoint]

    @classmethod
    def from_forecast(cls, key: ItemKey, fc: Forecast) -> "ForecastOut":
        return cls(
            item_key=str(key),
            current_stock=fc.current_stock,
            minimum_stock=fc.minimum_stock,
            daily_usage=fc.daily_usage,
            horizon_days=fc.horizon_days,
            status=fc.status.value,
            days_until_minimum=fc.days_until_minimum,
            restock_date=fc.restock_date,
            curve=[CurvePoint(day=day, projected_stock=stock) for day, stock in fc.curve],
        )
