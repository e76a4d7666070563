import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Text
from sqlalchemy.orm import relationship

from .database import Base, GUID


class InventoryAllocation(Base):
    __tablename__ = "inventory_allocations"

    id = Column(GUID, primary_key=True, default=uuid.uuid4)
    order_item_id = Column(GUID, ForeignKey("order_items.id", ondelete="CASCADE"), nullable=False, index=True)
    warehouse_id = Column(GUID, ForeignKey("warehouses.id", ondelete="RESTRICT"), nullable=False, index=True)
    batch_id = Column(GUID, ForeignKey("batch_registry.id", ondelete="RESTRICT"), nullable=False, index=True)
    allocated_quantity = Column(Integer, nullable=False)
    status = Column(Text, nullable=False, default="ALLOC_PENDING", index=True)
    allocated_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    created_by = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    updated_at = Column(DateTime, nullable=True)

    order_item = relationship("OrderItem")
    warehouse = relationship("Warehouse")
    batch = relationship("BatchRegistry")
