"""
Error taxonomy shared by services, routes and background tasks.

Services raise these; the API layer maps them to HTTP responses via
``register_error_handlers``. Background tasks decide per error type whether to
swallow (sweeper) or propagate (ledger).
"""
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class AppError(Exception):
    status_code = 500

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__


class NotFound(AppError):
    status_code = 404


class UserNotFound(NotFound):
    def __init__(self, user_id: str) -> None:
        super().__init__(f"user not found: {user_id}")
        self.user_id = user_id


class ImageNotFound(NotFound):
    def __init__(self, image_id: str) -> None:
        super().__init__(f"image not found: {image_id}")
        self.image_id = image_id


class Conflict(AppError):
    status_code = 409


class Unauthorized(AppError):
    status_code = 401


class InsufficientCredits(AppError):
    status_code = 402

    def __init__(self, user_id: str, required: int) -> None:
        super().__init__(f"insufficient credits: {required} required")
        self.user_id = user_id
        self.required = required


class UpstreamUnavailable(AppError):
    """Durable Store or an external provider call failed."""

    status_code = 503

    def __init__(self, upstream: str, message: str = "") -> None:
        super().__init__(f"{upstream} unavailable" + (f": {message}" if message else ""))
        self.upstream = upstream


class CreditFailed(AppError):
    """Payment recorded but the buyer could not be credited. Needs manual reconciliation."""

    status_code = 500

    def __init__(self, payment_id: str, buyer_id: str, reason: str = "buyer not found") -> None:
        super().__init__(f"payment {payment_id} recorded but buyer {buyer_id} was not credited: {reason}")
        self.payment_id = payment_id
        self.buyer_id = buyer_id
        self.reason = reason


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def handle_app_error(request: Request, exc: AppError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(
                "request_failed",
                extra={"path": request.url.path, "status_code": exc.status_code, "error": exc.message},
            )
        return JSONResponse(status_code=exc.status_code, content={"errorMessage": exc.message})
