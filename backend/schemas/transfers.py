from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, field_validator

from core.models import Location, StatusRecord, Transfer
from schemas.inventory import strip_code


class LocationIn(BaseModel):
    plant: str
    storage_location: str

    @field_validator("plant", "storage_location")
    @classmethod
    def _codes(cls, v: str) -> str:
        return strip_code(v)

    def to_location(self) -> Location:
        return Location(plant=self.plant, storage_location=self.storage_location)


class TransferLineIn(BaseModel):
    material_code: str
    quantity: int


class TransferCreate(BaseModel):
    source: LocationIn
    destination: LocationIn
    lines: List[TransferLineIn]
    scheduled_date: Optional[date] = None
    notes: Optional[str] = None
    created_by: Optional[str] = None

    @field_validator("notes", "created_by")
    @classmethod
    def _strip_nullable(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None


class TransferStatusUpdate(BaseModel):
    # plain str so unknown values reach the workflow and come back as unknown_status
    status: str
    note: Optional[str] = None


class StatusRecordOut(BaseModel):
    status: str
    timestamp: datetime
    note: Optional[str] = None
    accepted: bool = True

    @classmethod
    def from_record(cls, r: StatusRecord) -> "StatusRecordOut":
        return cls(status=r.status, timestamp=r.timestamp, note=r.note, accepted=r.accepted)


class TransferOut(BaseModel):
    id: UUID
    transfer_number: str
    source: str
    destination: str
    status: str
    request_date: datetime
    scheduled_date: date
    completion_date: Optional[datetime] = None
    notes: str = ""
    created_by: Optional[str] = None
    total_quantity: int
    lines: List[TransferLineIn]
    status_history: List[StatusRecordOut]

    @classmethod
    def from_transfer(cls, t: Transfer) -> "TransferOut":
        return cls(
            id=t.id,
            transfer_number=t.transfer_number,
            source=str(t.source),
            destination=str(t.destination),
            status=t.status.value,
            request_date=t.request_date,
            scheduled_date=t.scheduled_date,
            completion_date=t.completion_date,
            notes=t.notes,
            created_by=t.created_by,
            total_quantity=t.total_quantity,
            lines=[TransferLineIn(material_code=ln.material_code, quantity=ln.quantity) for ln in t.lines],
            status_history=[StatusRecordOut.from_record(r) for r in t.status_history],
        )
