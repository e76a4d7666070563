import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, Column, Date, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from .database import Base, GUID


class ProductBatch(Base):
    __tablename__ = "product_batches"

    id = Column(GUID, primary_key=True, default=uuid.uuid4)
    lot_number = Column(String, nullable=False, index=True)
    sku_id = Column(GUID, ForeignKey("skus.id", ondelete="CASCADE"), nullable=False, index=True)
    manufacturer_id = Column(GUID, ForeignKey("manufacturers.id", ondelete="SET NULL"), nullable=True, index=True)
    manufacture_date = Column(Date, nullable=True)
    expiry_date = Column(Date, nullable=True, index=True)
    initial_quantity = Column(Integer, nullable=False, default=0)
    status = Column(Text, nullable=False, default="pending", index=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    created_by = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    updated_at = Column(DateTime, nullable=True)

    sku = relationship("Sku")
    manufacturer = relationship("Manufacturer")


class PackagingMaterial(Base):
    __tablename__ = "packaging_materials"

    id = Column(GUID, primary_key=True, default=uuid.uuid4)
    code = Column(String, nullable=False, unique=True, index=True)
    name = Column(String, nullable=False)
    category = Column(String, nullable=True)
    supplier_id = Column(GUID, ForeignKey("suppliers.id", ondelete="SET NULL"), nullable=True, index=True)
    status = Column(Text, nullable=False, default="active")
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    supplier = relationship("Supplier")


class PackagingMaterialBatch(Base):
    __tablename__ = "packaging_material_batches"

    id = Column(GUID, primary_key=True, default=uuid.uuid4)
    lot_number = Column(String, nullable=False, index=True)
    packaging_material_id = Column(
        GUID, ForeignKey("packaging_materials.id", ondelete="CASCADE"), nullable=False, index=True
    )
    supplier_id = Column(GUID, ForeignKey("suppliers.id", ondelete="SET NULL"), nullable=True, index=True)
    material_snapshot_name = Column(String, nullable=True)
    received_date = Column(Date, nullable=True)
    expiry_date = Column(Date, nullable=True, index=True)
    quantity = Column(Integer, nullable=False, default=0)
    unit = Column(String, nullable=True)
    unit_cost = Column(Numeric(12, 4), nullable=True)
    currency = Column(String(3), nullable=True)
    exchange_rate = Column(Numeric(12, 6), nullable=True)
    status = Column(Text, nullable=False, default="pending", index=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    created_by = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    packaging_material = relationship("PackagingMaterial")
    supplier = relationship("Supplier")


class BatchRegistry(Base):
    """One row per physical lot, whichever table holds its details."""
    __tablename__ = "batch_registry"
    __table_args__ = (
        CheckConstraint(
            "(product_batch_id IS NOT NULL AND packaging_material_batch_id IS NULL) OR "
            "(product_batch_id IS NULL AND packaging_material_batch_id IS NOT NULL)",
            name="ck_batch_registry_one_source",
        ),
    )

    id = Column(GUID, primary_key=True, default=uuid.uuid4)
    batch_type = Column(Text, nullable=False, index=True)  # product|packaging_material
    product_batch_id = Column(
        GUID, ForeignKey("product_batches.id", ondelete="CASCADE"), nullable=True, unique=True
    )
    packaging_material_batch_id = Column(
        GUID, ForeignKey("packaging_material_batches.id", ondelete="CASCADE"), nullable=True, unique=True
    )
    registered_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    registered_by = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    note = Column(Text, nullable=True)

    product_batch = relationship("ProductBatch")
    packaging_material_batch = relationship("PackagingMaterialBatch")
