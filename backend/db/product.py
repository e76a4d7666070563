import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import relationship

from .database import Base, GUID


class Product(Base):
    __tablename__ = "products"

    id = Column(GUID, primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False, index=True)
    brand = Column(String, nullable=True, index=True)
    category = Column(String, nullable=True, index=True)
    series = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    status = Column(Text, nullable=False, default="active", index=True)  # active|inactive|discontinued

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    created_by = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    updated_at = Column(DateTime, nullable=True)
    updated_by = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    skus = relationship("Sku", back_populates="product", cascade="all, delete-orphan")


class Sku(Base):
    __tablename__ = "skus"

    id = Column(GUID, primary_key=True, default=uuid.uuid4)
    product_id = Column(GUID, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    sku = Column(String, nullable=False, unique=True, index=True)
    barcode = Column(String, nullable=True, index=True)
    language = Column(String, nullable=True)
    country_code = Column(String(8), nullable=True, index=True)
    market_region = Column(String, nullable=True, index=True)
    size_label = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    status = Column(Text, nullable=False, default="active", index=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    created_by = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    updated_at = Column(DateTime, nullable=True)
    updated_by = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    product = relationship("Product", back_populates="skus")
    images = relationship("SkuImage", back_populates="sku", cascade="all, delete-orphan")
