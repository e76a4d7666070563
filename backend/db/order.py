import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from .database import Base, GUID


class Order(Base):
    __tablename__ = "orders"

    id = Column(GUID, primary_key=True, default=uuid.uuid4)
    order_number = Column(String, nullable=False, unique=True, index=True)
    order_category = Column(Text, nullable=False, default="sales", index=True)  # sales|transfer|manufacturing
    status = Column(Text, nullable=False, default="ORDER_PENDING", index=True)
    status_date = Column(DateTime, nullable=True)
    order_date = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    delivery_method = Column(String, nullable=True)
    note = Column(Text, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    created_by = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    updated_at = Column(DateTime, nullable=True)
    updated_by = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")


class OrderItem(Base):
    __tablename__ = "order_items"
    __table_args__ = (
        CheckConstraint(
            "(sku_id IS NOT NULL AND packaging_material_id IS NULL) OR "
            "(sku_id IS NULL AND packaging_material_id IS NOT NULL)",
            name="ck_order_items_one_target",
        ),
    )

    id = Column(GUID, primary_key=True, default=uuid.uuid4)
    order_id = Column(GUID, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    sku_id = Column(GUID, ForeignKey("skus.id", ondelete="RESTRICT"), nullable=True, index=True)
    packaging_material_id = Column(
        GUID, ForeignKey("packaging_materials.id", ondelete="RESTRICT"), nullable=True, index=True
    )
    quantity_ordered = Column(Integer, nullable=False)
    price = Column(Numeric(12, 2), nullable=True)
    status = Column(Text, nullable=False, default="ORDER_PENDING", index=True)
    status_date = Column(DateTime, nullable=True)

    order = relationship("Order", back_populates="items")
    sku = relationship("Sku")
    packaging_material = relationship("PackagingMaterial")
