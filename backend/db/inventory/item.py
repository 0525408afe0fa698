import uuid

from sqlalchemy import CheckConstraint, Column, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from ..database import Base


class InventoryItem(Base):
    __tablename__ = "inventory_items"
    __table_args__ = (
        UniqueConstraint("plant", "storage_location", "material_code", name="ux_inventory_items_key"),
        CheckConstraint("current_stock >= 0", name="ck_inventory_items_current_stock"),
        CheckConstraint("minimum_stock >= 0", name="ck_inventory_items_minimum_stock"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)

    plant = Column(String, nullable=False, index=True)
    storage_location = Column(String, nullable=False)
    material_code = Column(String, nullable=False, index=True)

    plant_name = Column(String, nullable=False, default="")
    material_description = Column(Text, nullable=False, default="")
    old_material_no = Column(String, nullable=False, default="")
    description = Column(Text, nullable=False, default="")

    # capacity is informational only
    total_stock = Column(Integer, nullable=False, default=0)
    # only ever changed together with a stock_movements insert
    current_stock = Column(Integer, nullable=False, default=0)
    minimum_stock = Column(Integer, nullable=False, default=0)

    movements = relationship("StockMovement", back_populates="inventory_item")
