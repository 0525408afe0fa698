"""Domain records shared by the ledger, the workflows and the repositories."""

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator, model_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MovementKind(str, Enum):
    RECEIPT = "receipt"
    RESERVATION = "reservation"
    TRANSFER_OUT = "transfer-out"
    TRANSFER_IN = "transfer-in"
    ADJUSTMENT = "adjustment"


# Required sign of the delta per kind; 0 means either sign
MOVEMENT_SIGN = {
    MovementKind.RECEIPT: 1,
    MovementKind.TRANSFER_IN: 1,
    MovementKind.RESERVATION: -1,
    MovementKind.TRANSFER_OUT: -1,
    MovementKind.ADJUSTMENT: 0,
}

OUTBOUND_KINDS = {MovementKind.RESERVATION, MovementKind.TRANSFER_OUT, MovementKind.ADJUSTMENT}


class StockStatus(str, Enum):
    GOOD = "good"
    LOW = "low"
    CRITICAL = "critical"


class TransferStatus(str, Enum):
    DRAFT = "draft"
    PENDING = "pending"
    IN_TRANSIT = "in-transit"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class OrderStatus(str, Enum):
    PENDING_DELIVERY = "pending-delivery"
    PENDING_INVOICE = "pending-invoice"
    PENDING_ITEM = "pending-item"
    DELIVERY = "delivery"
    DONE = "done"


def _code(v: str) -> str:
    v = (v or "").strip()
    if not v:
        raise ValueError("field is required")
    if "/" in v:
        raise ValueError("'/' is not allowed in codes")
    return v


class Location(BaseModel):
    """A storage location inside a plant."""

    model_config = ConfigDict(frozen=True)

    plant: str
    storage_location: str

    @field_validator("plant", "storage_location")
    @classmethod
    def _strip_code(cls, v: str) -> str:
        return _code(v)

    def item(self, material_code: str) -> "ItemKey":
        return ItemKey(plant=self.plant, storage_location=self.storage_location, material_code=material_code)

    def __str__(self) -> str:
        return f"{self.plant}/{self.storage_location}"


class ItemKey(BaseModel):
    model_config = ConfigDict(frozen=True)

    plant: str
    storage_location: str
    material_code: str

    @field_validator("plant", "storage_location", "material_code")
    @classmethod
    def _strip_code(cls, v: str) -> str:
        return _code(v)

    @property
    def location(self) -> Location:
        return Location(plant=self.plant, storage_location=self.storage_location)

    @classmethod
    def parse(cls, text: str) -> "ItemKey":
        parts = (text or "").split("/")
        if len(parts) != 3:
            raise ValueError(f"item key must look like PLANT/SLOC/MATERIAL, got {text!r}")
        return cls(plant=parts[0], storage_location=parts[1], material_code=parts[2])

    def __str__(self) -> str:
        return f"{self.plant}/{self.storage_location}/{self.material_code}"


class InventoryItem(BaseModel):
    key: ItemKey
    plant_name: str = ""
    material_description: str = ""
    old_material_no: str = ""
    description: str = ""
    total_stock: int = 0
    current_stock: int = 0
    minimum_stock: int = 0

    @field_validator("total_stock", "current_stock", "minimum_stock")
    @classmethod
    def _non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("must be >= 0")
        return v


class StockMovement(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid.uuid4)
    item_key: ItemKey
    quantity: int
    kind: MovementKind
    created_at: datetime = Field(default_factory=utcnow)
    correlation_id: Optional[str] = None
    note: Optional[str] = None

    @model_validator(mode="after")
    def _check_sign(self):
        if self.quantity == 0:
            raise ValueError("movement quantity must not be zero")
        sign = MOVEMENT_SIGN[self.kind]
        if sign and (self.quantity > 0) != (sign > 0):
            direction = "positive" if sign > 0 else "negative"
            raise ValueError(f"{self.kind.value} movements must have a {direction} quantity")
        return self


class StatusRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: str
    timestamp: datetime = Field(default_factory=utcnow)
    note: Optional[str] = None
    accepted: bool = True


def current_status(history: List[StatusRecord]) -> str:
    for record in reversed(history):
        if record.accepted:
            return record.status
    raise ValueError("status history has no accepted record")


class TransferLine(BaseModel):
    model_config = ConfigDict(frozen=True)

    material_code: str
    quantity: int

    @field_validator("material_code")
    @classmethod
    def _material(cls, v: str) -> str:
        return _code(v)

    @field_validator("quantity")
    @classmethod
    def _quantity_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("quantity must be > 0")
        return v


class Transfer(BaseModel):
    id: UUID = Field(default_factory=uuid.uuid4)
    transfer_number: str
    source: Location
    destination: Location
    request_date: datetime = Field(default_factory=utcnow)
    scheduled_date: date
    completion_date: Optional[datetime] = None
    notes: str = ""
    created_by: Optional[str] = None
    lines: List[TransferLine]
    status_history: List[StatusRecord]

    @computed_field
    @property
    def status(self) -> TransferStatus:
        return TransferStatus(current_status(self.status_history))

    @property
    def total_quantity(self) -> int:
        return sum(line.quantity for line in self.lines)


class OrderLine(BaseModel):
    model_config = ConfigDict(frozen=True)

    description: str
    quantity: int
    unit_price: Decimal

    @field_validator("description")
    @classmethod
    def _description(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("description is required")
        return v

    @field_validator("quantity")
    @classmethod
    def _quantity_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("quantity must be > 0")
        return v

    @field_validator("unit_price")
    @classmethod
    def _price_non_negative(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("unit_price must be >= 0")
        return v

    @computed_field
    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


class Order(BaseModel):
    id: UUID = Field(default_factory=uuid.uuid4)
    po_number: str
    po_date: date
    customer_name: str
    customer_address: str = ""
    created_at: datetime = Field(default_factory=utcnow)
    lines: List[OrderLine]
    status_history: List[StatusRecord]

    @computed_field
    @property
    def status(self) -> OrderStatus:
        return OrderStatus(current_status(self.status_history))

    @computed_field
    @property
    def total_amount(self) -> Decimal:
        return sum((line.line_total for line in self.lines), Decimal("0"))
