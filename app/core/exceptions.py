"""
Domain errors and their HTTP mapping

Services raise these; routers never build error responses themselves.
Every failure carries a stable code plus a human-readable message.
"""
import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base class for all expected, user-visible failures"""

    code = "APP_ERROR"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": {"code": self.code, "message": self.message}}


class ValidationError(AppError):
    """Missing or out-of-range input"""

    code = "VALIDATION_ERROR"
    status_code = status.HTTP_400_BAD_REQUEST


class NotFound(AppError):
    """Referenced document id or reference does not exist"""

    code = "NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND


class InvalidState(AppError):
    """Operation not allowed in the document's current lifecycle state"""

    code = "INVALID_STATE"
    status_code = status.HTTP_409_CONFLICT


class PersistenceError(AppError):
    """Underlying store failure; the transaction has been rolled back"""

    code = "PERSISTENCE_ERROR"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


async def app_error_handler(request: Request, exc: AppError):
    if isinstance(exc, PersistenceError):
        logger.error(f"Persistence failure on {request.method} {request.url.path}: {exc.message}")
    else:
        logger.info(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def unhandled_error_handler(request: Request, exc: Exception):
    """Global exception handler"""
    logger.error(f"Unhandled exception: {str(exc)}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": {
                "code": "INTERNAL_SERVER_ERROR",
                "message": "An unexpected error occurred"
            }
        }
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
