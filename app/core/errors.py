# app/core/errors.py
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse


class AppError(Exception):
    """Error with a message that is safe to show to the client."""
    status_code: int = status.HTTP_400_BAD_REQUEST
    default_message = "Bad request"

    def __init__(self, message: str | None = None, status_code: int | None = None):
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class AuthenticationError(AppError):
    # nunca indica si falló el email, la contraseña o el código
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Invalid credentials"


class RateLimitExceeded(AppError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    default_message = "Too many requests"


class PermissionDenied(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Forbidden"


class NotFoundOrForbidden(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class DecryptionError(Exception):
    """Tampered envelope, wrong key or malformed input. Internal only."""


class ConfigurationError(RuntimeError):
    """Missing or invalid configuration; fatal at startup."""


class OutboundHostNotAllowed(Exception):
    def __init__(self, url: str):
        self.url = url
        super().__init__("Outbound host not allowed")


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)  # type: ignore[arg-type]
