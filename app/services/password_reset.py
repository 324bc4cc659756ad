# app/services/password_reset.py
import hmac
import secrets
from datetime import timedelta
from typing import Any, Awaitable, Callable
from urllib.parse import urlencode

from app.core.config import settings
from app.core.errors import ValidationError
from app.core.logging import get_logger
from app.core.security import hash_password
from app.services.user_store import UserStore, as_utc, utcnow

logger = get_logger(__name__)

GENERIC_RESET_MESSAGE = "If the email exists, you will receive recovery instructions"
MIN_PASSWORD_LENGTH = 8

ResetLinkSender = Callable[[str, str], Awaitable[None]]
Scheduler = Callable[..., Any]


async def log_reset_link(email: str, reset_url: str) -> None:
    # sin proveedor de correo: solo dejamos constancia (sin el token)
    logger.info("password_reset_link_issued", email=email)


class PasswordResetService:
    def __init__(self, store: UserStore, send_reset_link: ResetLinkSender | None = None):
        self.store = store
        self.send_reset_link = send_reset_link or log_reset_link

    async def request_reset(self, email: str, schedule: Scheduler | None = None) -> str:
        """
        Always answers with the generic message.

        With ``schedule`` (e.g. ``BackgroundTasks.add_task``) the lookup, token
        write and delivery run after the response, so known and unknown
        emails cost the same on the request path. Without it they run inline.
        """
        if not email:
            raise ValidationError("Email is required")

        logger.info("password_reset_requested")
        if schedule is not None:
            schedule(self.issue_reset, email)
        else:
            await self.issue_reset(email)
        return GENERIC_RESET_MESSAGE

    async def issue_reset(self, email: str) -> None:
        user = await self.store.find_user_by_email(email)
        if not user:
            return

        token = secrets.token_hex(32)
        expires = utcnow() + timedelta(minutes=settings.RESET_TOKEN_TTL_MINUTES)
        await self.store.update_user(user.id, reset_token=token, reset_token_expires=expires)

        query = urlencode({"token": token, "email": user.email})
        await self.send_reset_link(user.email, f"{settings.APP_URL}/auth/reset-password?{query}")

    async def confirm_reset(self, token: str, email: str, new_password: str) -> str:
        if not token or not email or not new_password:
            raise ValidationError("Token, email and new password are required")
        if len(new_password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

        user = await self.store.find_user_by_email(email)
        stored = user.reset_token if user else None
        expires = as_utc(user.reset_token_expires) if user else None
        token_ok = bool(stored) and hmac.compare_digest(stored.encode(), token.encode())
        if not user or not token_ok or not expires or expires <= utcnow():
            raise ValidationError("Invalid or expired token")

        await self.store.update_user(
            user.id,
            hashed_password=hash_password(new_password),
            reset_token=None,
            reset_token_expires=None,
        )
        return "Password updated successfully"
