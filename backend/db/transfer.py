import uuid

from sqlalchemy import JSON, Column, Date, DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import relationship

from .database import Base


class Transfer(Base):
    __tablename__ = "transfers"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    transfer_number = Column(String, nullable=False, unique=True)

    source_plant = Column(String, nullable=False)
    source_storage_location = Column(String, nullable=False)
    destination_plant = Column(String, nullable=False)
    destination_storage_location = Column(String, nullable=False)

    request_date = Column(DateTime(timezone=True), nullable=False, index=True)
    scheduled_date = Column(Date, nullable=False)
    completion_date = Column(DateTime(timezone=True), nullable=True)
    notes = Column(Text, nullable=False, default="")
    created_by = Column(String, nullable=True)

    # denormalised from the last accepted history entry, for filtering
    status = Column(String, nullable=False, default="draft", index=True)  # draft|pending|in-transit|completed|cancelled
    status_history = Column(JSON, nullable=False, default=list)

    lines = relationship(
        "TransferLine",
        back_populates="transfer",
        cascade="all, delete-orphan",
        order_by="TransferLine.position",
    )


class TransferLine(Base):
    __tablename__ = "transfer_lines"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    transfer_id = Column(Uuid, ForeignKey("transfers.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    material_code = Column(String, nullable=False)
    quantity = Column(Integer, nullable=False)

    transfer = relationship("Transfer", back_populates="lines")
