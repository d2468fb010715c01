"""
Asset - метаданные видео и картинок. Видео может ссылаться на закрытую картинку (associated_image_id).
Файлы лежат в blob store; здесь только storage_key.
"""
from uuid import uuid4

from sqlalchemy import Column, DateTime, Numeric, String

from app.db.base import Base
from app.utils.clock import utcnow


class Asset(Base):
    __tablename__ = "assets"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    kind = Column(String, nullable=False)  # video / image
    title = Column(String, nullable=False, default="")
    price = Column(Numeric(12, 2), nullable=True)  # NULL = default_image_price
    associated_image_id = Column(String, nullable=True, index=True)
    storage_key = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
