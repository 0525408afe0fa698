import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..database import Base


class StockMovement(Base):
    __tablename__ = "stock_movements"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)

    inventory_item_id = Column(
        Uuid,
        ForeignKey("inventory_items.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    quantity = Column(Integer, nullable=False)
    # 'receipt' | 'reservation' | 'transfer-out' | 'transfer-in' | 'adjustment'
    kind = Column(String, nullable=False, index=True)
    correlation_id = Column(String, nullable=True, index=True)
    note = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), index=True)

    inventory_item = relationship("InventoryItem", back_populates="movements")
