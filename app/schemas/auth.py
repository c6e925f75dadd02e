# app/schemas/auth.py
"""
Authentication request and response schemas
"""
from datetime import datetime
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, Field


# ============================================================================
# LOGIN SCHEMAS
# ============================================================================

class LoginRequest(BaseModel):
    """Request schema for admin login"""
    username: str = Field(..., min_length=1, description="Admin username")
    password: str = Field(..., min_length=1, description="Admin password")

    class Config:
        json_schema_extra = {
            "example": {
                "username": "admin",
                "password": "SecurePassword123!"
            }
        }


class AdminUserResponse(BaseModel):
    """Admin user data response schema"""
    id: UUID
    username: str
    email: Optional[str] = None
    name: Optional[str] = None
    role: str
    last_login_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class LoginResponse(BaseModel):
    """Response schema for successful login"""
    success: bool = True
    token: str
    expires_in: int = Field(..., description="Access token expiration in seconds")
    user: AdminUserResponse


# ============================================================================
# ERROR RESPONSE SCHEMAS
# ============================================================================

class ErrorResponse(BaseModel):
    """Standard error response schema"""
    error: dict

    class Config:
        json_schema_extra = {
            "example": {
                "error": {
                    "code": "INVALID_STATE",
                    "message": "Only draft invoices can be deleted"
                }
            }
        }
