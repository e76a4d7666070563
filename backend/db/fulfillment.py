import uuid
from datetime import datetime

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from .database import Base, GUID


class OutboundShipment(Base):
    __tablename__ = "outbound_shipments"

    id = Column(GUID, primary_key=True, default=uuid.uuid4)
    order_id = Column(GUID, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    warehouse_id = Column(GUID, ForeignKey("warehouses.id", ondelete="RESTRICT"), nullable=False, index=True)
    delivery_method = Column(String, nullable=True)
    status = Column(Text, nullable=False, default="SHIPMENT_PENDING", index=True)
    shipped_at = Column(DateTime, nullable=True)
    expected_delivery_date = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    created_by = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    updated_at = Column(DateTime, nullable=True)

    order = relationship("Order")
    warehouse = relationship("Warehouse")
    fulfillments = relationship("OrderFulfillment", back_populates="shipment", cascade="all, delete-orphan")
    batches = relationship("ShipmentBatch", back_populates="shipment", cascade="all, delete-orphan")


class OrderFulfillment(Base):
    __tablename__ = "order_fulfillments"

    id = Column(GUID, primary_key=True, default=uuid.uuid4)
    order_item_id = Column(GUID, ForeignKey("order_items.id", ondelete="CASCADE"), nullable=False, index=True)
    shipment_id = Column(GUID, ForeignKey("outbound_shipments.id", ondelete="CASCADE"), nullable=False, index=True)
    quantity_fulfilled = Column(Integer, nullable=False)
    status = Column(Text, nullable=False, default="FULFILLMENT_PENDING", index=True)
    fulfilled_at = Column(DateTime, nullable=True)
    fulfilled_by = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    shipment = relationship("OutboundShipment", back_populates="fulfillments")
    order_item = relationship("OrderItem")


class ShipmentBatch(Base):
    __tablename__ = "shipment_batches"

    id = Column(GUID, primary_key=True, default=uuid.uuid4)
    shipment_id = Column(GUID, ForeignKey("outbound_shipments.id", ondelete="CASCADE"), nullable=False, index=True)
    batch_id = Column(GUID, ForeignKey("batch_registry.id", ondelete="RESTRICT"), nullable=False, index=True)
    quantity_shipped = Column(Integer, nullable=False)
    note = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    shipment = relationship("OutboundShipment", back_populates="batches")
    batch = relationship("BatchRegistry")
