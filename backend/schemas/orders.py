from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, field_validator

from core.models import Order
from schemas.inventory import ItemKeyIn
from schemas.transfers import StatusRecordOut


class OrderLineIn(BaseModel):
    description: str
    quantity: int
    unit_price: Decimal


class OrderCreate(BaseModel):
    po_number: str
    po_date: date
    customer_name: str
    customer_address: Optional[str] = None
    lines: List[OrderLineIn]

    @field_validator("po_number", "customer_name")
    @classmethod
    def _strip_required(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("field is required")
        return v


class OrderStatusUpdate(BaseModel):
    status: str
    note: Optional[str] = None


class ReservationRequest(ItemKeyIn):
    quantity: int

    @field_validator("quantity")
    @classmethod
    def _quantity_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("quantity must be > 0")
        return v


class OrderLineOut(BaseModel):
    description: str
    quantity: int
    unit_price: Decimal
    line_total: Decimal


class OrderOut(BaseModel):
    id: UUID
    po_number: str
    po_date: date
    customer_name: str
    customer_address: str = ""
    created_at: datetime
    status: str
    total_amount: Decimal
    lines: List[OrderLineOut]
    status_history: List[StatusRecordOut]

    @classmethod
    def from_order(cls, o: Order) -> "OrderOut":
        return cls(
            id=o.id,
            po_number=o.po_number,
            po_date=o.po_date,
            customer_name=o.customer_name,
            customer_address=o.customer_address,
            created_at=o.created_at,
            status=o.status.value,
            total_amount=o.total_amount,
            lines=[
                OrderLineOut(
                    description=ln.description,
                    quantity=ln.quantity,
                    unit_price=ln.unit_price,
                    line_total=ln.line_total,
                )
                for ln in o.lines
            ],
            status_history=[StatusRecordOut.from_record(r) for r in o.status_history],
        )
