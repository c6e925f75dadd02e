"""
Base model classes and mixins
"""
import uuid
from datetime import datetime
from sqlalchemy import Column, DateTime, Uuid

from app.core.database import Base


class IdMixin:
    """UUID primary key assigned by the application"""

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)


class TimestampMixin:
    """Mixin for created_at and updated_at timestamps"""

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )
