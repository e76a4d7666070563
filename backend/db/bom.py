import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from .database import Base, GUID


class Part(Base):
    """A component a finished product is built from (bottle, cap, box, label...)."""
    __tablename__ = "parts"

    id = Column(GUID, primary_key=True, default=uuid.uuid4)
    code = Column(String, nullable=False, unique=True, index=True)
    name = Column(String, nullable=False)
    type = Column(String, nullable=True)
    unit_of_measure = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    materials = relationship("PartMaterial", back_populates="part", cascade="all, delete-orphan")


class PartMaterial(Base):
    """Packaging materials whose stock can be used for a part."""
    __tablename__ = "part_materials"
    __table_args__ = (
        UniqueConstraint("part_id", "packaging_material_id", name="ux_part_materials_part_material"),
    )

    id = Column(GUID, primary_key=True, default=uuid.uuid4)
    part_id = Column(GUID, ForeignKey("parts.id", ondelete="CASCADE"), nullable=False, index=True)
    packaging_material_id = Column(
        GUID, ForeignKey("packaging_materials.id", ondelete="CASCADE"), nullable=False, index=True
    )

    part = relationship("Part", back_populates="materials")
    packaging_material = relationship("PackagingMaterial")


class Bom(Base):
    __tablename__ = "boms"
    __table_args__ = (
        UniqueConstraint("sku_id", "revision", name="ux_boms_sku_revision"),
    )

    id = Column(GUID, primary_key=True, default=uuid.uuid4)
    product_id = Column(GUID, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    sku_id = Column(GUID, ForeignKey("skus.id", ondelete="CASCADE"), nullable=False, index=True)
    code = Column(String, nullable=False, unique=True, index=True)
    name = Column(String, nullable=False)
    revision = Column(Integer, nullable=False, default=1)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    is_default = Column(Boolean, nullable=False, default=False, index=True)
    description = Column(Text, nullable=True)
    status = Column(Text, nullable=False, default="active")

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    created_by = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    updated_at = Column(DateTime, nullable=True)
    updated_by = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    product = relationship("Product")
    sku = relationship("Sku")
    items = relationship("BomItem", back_populates="bom", cascade="all, delete-orphan")


class BomItem(Base):
    __tablename__ = "bom_items"

    id = Column(GUID, primary_key=True, default=uuid.uuid4)
    bom_id = Column(GUID, ForeignKey("boms.id", ondelete="CASCADE"), nullable=False, index=True)
    part_id = Column(GUID, ForeignKey("parts.id", ondelete="RESTRICT"), nullable=False, index=True)
    part_qty_per_product = Column(Numeric(12, 4), nullable=False, default=1)
    unit = Column(String, nullable=True)
    specifications = Column(Text, nullable=True)
    estimated_unit_cost = Column(Numeric(12, 4), nullable=True)
    currency = Column(String(3), nullable=True)
    exchange_rate = Column(Numeric(12, 6), nullable=True)
    note = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    bom = relationship("Bom", back_populates="items")
    part = relationship("Part")
