import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, LargeBinary, String
from sqlalchemy.orm import relationship

from .database import Base, GUID


class SkuImage(Base):
    """Stored image binary for a SKU (main / thumbnail / zoom)."""
    __tablename__ = "sku_images"

    id = Column(GUID, primary_key=True, default=uuid.uuid4)
    sku_id = Column(GUID, ForeignKey("skus.id", ondelete="CASCADE"), nullable=False, index=True)
    image_type = Column(String(32), nullable=False, default="main")
    data = Column(LargeBinary, nullable=False)
    content_type = Column(String(255), nullable=False)
    alt_text = Column(String, nullable=True)
    is_primary = Column(Boolean, nullable=False, default=False)
    uploaded_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    uploaded_by = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    sku = relationship("Sku", back_populates="images")

    @property
    def url(self) -> str:
        return f"/skus/images/{self.id}"
