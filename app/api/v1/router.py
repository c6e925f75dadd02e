# app/api/v1/router.py
from fastapi import APIRouter

from app.api.v1.endpoints import (
    auth,
    quotations,
    invoices,
)

api_router = APIRouter()
api_router.include_router(auth.router)
api_router.include_router(quotations.router)
api_router.include_router(invoices.router)
