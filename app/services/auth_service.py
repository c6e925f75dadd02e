# app/services/auth_service.py
"""
Authentication service with business logic
"""
import logging
from datetime import datetime
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.database import transaction
from app.core.security import create_access_token, hash_password, verify_password
from app.models.user import AdminUser
from app.schemas.auth import AdminUserResponse, LoginRequest, LoginResponse

logger = logging.getLogger(__name__)


class AuthService:
    """Service class for admin authentication"""

    def __init__(self, db: Session):
        self.db = db

    # ========================================================================
    # LOGIN
    # ========================================================================

    def login(self, data: LoginRequest) -> LoginResponse:
        user = self.db.query(AdminUser).filter(
            AdminUser.username == data.username,
            AdminUser.is_active == True
        ).first()

        if not user or not verify_password(data.password, user.password_hash):
            logger.info(f"Failed login attempt for {data.username}")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail={
                    "error": {
                        "code": "INVALID_CREDENTIALS",
                        "message": "Invalid username or password"
                    }
                }
            )

        with transaction(self.db):
            user.last_login_at = datetime.utcnow()
        self.db.refresh(user)

        token = create_access_token(
            data={
                "sub": str(user.id),
                "username": user.username,
                "role": user.role,
            }
        )

        return LoginResponse(
            token=token,
            expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
            user=AdminUserResponse.model_validate(user)
        )

    # ========================================================================
    # BOOTSTRAP
    # ========================================================================

    def ensure_default_admin(self) -> Optional[AdminUser]:
        """Create the configured admin account when it does not exist yet"""
        username = settings.DEFAULT_ADMIN_USERNAME
        password = settings.DEFAULT_ADMIN_PASSWORD
        if not username or not password:
            return None

        existing = self.db.query(AdminUser).filter(AdminUser.username == username).first()
        if existing:
            return existing

        user = AdminUser(
            username=username,
            email=settings.DEFAULT_ADMIN_EMAIL,
            name="Administrator",
            password_hash=hash_password(password),
            role="admin",
            is_active=True,
        )
        with transaction(self.db):
            self.db.add(user)
        logger.info(f"Default admin '{username}' created")
        return user
