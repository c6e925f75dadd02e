"""
Authentication API endpoints
Admin login and the current-user lookup
"""
from typing import Any
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.security import get_current_user
from app.models.user import AdminUser
from app.schemas.auth import AdminUserResponse, LoginRequest, LoginResponse
from app.services.auth_service import AuthService

router = APIRouter(prefix="/auth", tags=["authentication"])


@router.post("/login", response_model=LoginResponse)
def login(
    request_data: LoginRequest,
    db: Session = Depends(get_db)
) -> Any:
    """
    Authenticate an admin and return a JWT
    """
    return AuthService(db).login(request_data)


@router.get("/me", response_model=AdminUserResponse)
def me(current_user: AdminUser = Depends(get_current_user)) -> Any:
    """Return the admin the token belongs to"""
    return current_user
