"""
Строка-замок на пару (user_id, image_id).
initiate/complete берут её через SELECT ... FOR UPDATE, чтобы проверка «доступа ещё нет» и вставка
шли одной атомарной операцией.
"""
from sqlalchemy import Column, DateTime, String

from app.db.base import Base
from app.utils.clock import utcnow


class PurchaseLock(Base):
    __tablename__ = "purchase_locks"

    user_id = Column(String, primary_key=True)
    image_id = Column(String, primary_key=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
