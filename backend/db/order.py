import uuid

from sqlalchemy import JSON, Column, Date, DateTime, ForeignKey, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import relationship

from .database import Base


class SalesOrder(Base):
    __tablename__ = "sales_orders"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    po_number = Column(String, nullable=False, index=True)
    po_date = Column(Date, nullable=False)
    customer_name = Column(String, nullable=False)
    customer_address = Column(Text, nullable=False, default="")
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)

    total_amount = Column(Numeric(14, 2), nullable=False, default=0)
    status = Column(String, nullable=False, default="pending-delivery", index=True)
    status_history = Column(JSON, nullable=False, default=list)

    lines = relationship(
        "SalesOrderLine",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="SalesOrderLine.position",
    )


class SalesOrderLine(Base):
    __tablename__ = "sales_order_lines"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    order_id = Column(Uuid, ForeignKey("sales_orders.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False)

    description = Column(Text, nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(14, 2), nullable=False)
    line_total = Column(Numeric(14, 2), nullable=False)

    order = relationship("SalesOrder", back_populates="lines")
