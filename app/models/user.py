"""
Admin user model
"""
from sqlalchemy import Column, String, Boolean, DateTime

from app.core.database import Base
from app.models.base import IdMixin, TimestampMixin


class AdminUser(Base, IdMixin, TimestampMixin):
    """
    Back-office user allowed to manage quotations and invoices
    """

    __tablename__ = "admin_users"

    username = Column(String(100), nullable=False, unique=True, index=True)
    email = Column(String(255), nullable=True)
    name = Column(String(255), nullable=True)
    password_hash = Column(String(255), nullable=False)

    # Role (admin, staff)
    role = Column(String(50), nullable=False, default="admin")

    # Status
    is_active = Column(Boolean, default=True, nullable=False)
    last_login_at = Column(DateTime, nullable=True)

    def __repr__(self):
        return f"<AdminUser {self.username} ({self.role})>"
