"""
Two-factor verification.

``verify_token`` is the pure decision (TOTP first, then backup codes).
``TwoFactorService`` wraps it with the user store: lookups, enrollment, and
persisting a consumed backup code together with the login timestamp.

Outward-facing failures never say which part was wrong.
"""
import hmac
from dataclasses import dataclass, field

from app.core.errors import AuthenticationError, ValidationError
from app.core.logging import get_logger
from app.core.security import verify_password
from app.models.user import User
from app.services import backup_codes, totp
from app.services.user_store import UserStore, as_utc, utcnow

logger = get_logger(__name__)

INVALID_2FA_MESSAGE = "Invalid 2FA code"


@dataclass
class TwoFactorVerification:
    is_valid: bool
    was_backup_code: bool = False
    remaining_codes: list[str] = field(default_factory=list)


@dataclass
class TwoFactorStatus:
    has_2fa: bool
    is_locked: bool


@dataclass
class TwoFactorState:
    enabled: bool
    remaining_backup_codes: int


@dataclass
class TwoFactorResult:
    success: bool
    message: str
    remaining_backup_codes: int | None = None


@dataclass
class TwoFactorSetup:
    secret: str
    manual_entry_key: str
    provisioning_uri: str
    qr_code: str


def _match_backup_code(codes: list[str], token: str) -> bool:
    found = False
    for code in codes:
        # sin cortocircuito: recorre toda la lista
        if hmac.compare_digest(code.encode(), token.encode()):
            found = True
    return found


def verify_token(secret: str, token: str, encrypted_backup_codes: str | None) -> TwoFactorVerification:
    """Decide one attempt. Has no side effects."""
    codes = backup_codes.decrypt_codes(encrypted_backup_codes)
    if not isinstance(token, str) or not token:
        return TwoFactorVerification(is_valid=False, remaining_codes=codes)

    if totp.verify(secret, token):
        return TwoFactorVerification(is_valid=True, was_backup_code=False, remaining_codes=codes)

    if _match_backup_code(codes, token):
        return TwoFactorVerification(
            is_valid=True,
            was_backup_code=True,
            remaining_codes=backup_codes.consume(codes, token),
        )

    return TwoFactorVerification(is_valid=False, remaining_codes=codes)


def is_locked(user: User) -> bool:
    locked_until = as_utc(user.account_locked_until)
    return bool(locked_until and locked_until > utcnow())


class TwoFactorService:
    def __init__(self, store: UserStore):
        self.store = store

    async def check_has_2fa(self, email: str) -> TwoFactorStatus:
        user = await self.store.find_user_by_email(email)
        if not user:
            # misma respuesta que un usuario sin 2FA
            return TwoFactorStatus(has_2fa=False, is_locked=False)
        return TwoFactorStatus(
            has_2fa=bool(user.two_factor_enabled and user.two_factor_secret),
            is_locked=is_locked(user),
        )

    async def verify_for_user(
        self, user: User | None, token: str, record_login: bool = False
    ) -> TwoFactorVerification:
        """
        Verify ``token`` for ``user`` and persist the outcome.

        A consumed backup code and ``last_login`` are written in one
        conditional update against the set that was read; if the write fails
        or the set changed underneath (a concurrent attempt spent a code), the
        attempt is reported as failed.
        """
        if not user or not user.two_factor_enabled or not user.two_factor_secret or is_locked(user):
            raise AuthenticationError(INVALID_2FA_MESSAGE, status_code=400)

        result = verify_token(user.two_factor_secret, token, user.two_factor_backup_codes)
        if not result.is_valid:
            logger.info("two_factor_rejected", user_id=user.id)
            raise AuthenticationError(INVALID_2FA_MESSAGE, status_code=400)

        fields: dict = {}
        if result.was_backup_code:
            fields["two_factor_backup_codes"] = backup_codes.encrypt_codes(result.remaining_codes)
        if record_login:
            fields["last_login"] = utcnow()

        swapped = True
        try:
            if result.was_backup_code:
                # solo si nadie consumió un código desde que leímos el conjunto
                swapped = await self.store.update_user_if(
                    user.id, {"two_factor_backup_codes": user.two_factor_backup_codes}, **fields
                )
            elif fields:
                await self.store.update_user(user.id, **fields)
        except Exception as e:
            logger.error("backup_code_persist_failed", user_id=user.id, exc_info=True)
            raise AuthenticationError(INVALID_2FA_MESSAGE, status_code=400) from e
        if not swapped:
            logger.warning("backup_code_race_lost", user_id=user.id)
            raise AuthenticationError(INVALID_2FA_MESSAGE, status_code=400)

        logger.info("two_factor_verified", user_id=user.id, was_backup_code=result.was_backup_code)
        return result

    async def verify_2fa(self, email: str, token: str) -> TwoFactorResult:
        if not email or not token:
            raise ValidationError("Email and code are required")

        user = await self.store.find_user_by_email(email)
        result = await self.verify_for_user(user, token, record_login=True)

        if result.was_backup_code:
            remaining = len(result.remaining_codes)
            return TwoFactorResult(
                success=True,
                message=f"Backup code used. You have {remaining} codes left.",
                remaining_backup_codes=remaining,
            )
        return TwoFactorResult(success=True, message="2FA verified successfully")

    async def begin_enrollment(self, user: User) -> TwoFactorSetup:
        if user.two_factor_enabled:
            raise ValidationError("2FA is already enabled")

        # secreto pendiente: queda guardado pero 2FA sigue desactivado hasta confirmar
        enrollment = totp.generate_secret(user.email)
        await self.store.update_user(user.id, two_factor_secret=enrollment.secret, two_factor_enabled=False)
        return TwoFactorSetup(
            secret=enrollment.secret,
            manual_entry_key=enrollment.manual_entry_key,
            provisioning_uri=enrollment.provisioning_uri,
            qr_code=totp.render_qr_code(enrollment.provisioning_uri),
        )

    async def enable(self, user: User, token: str) -> list[str]:
        """Confirm the pending secret; returns the backup codes (shown once)."""
        if user.two_factor_enabled:
            raise ValidationError("2FA is already enabled")
        if not user.two_factor_secret:
            raise ValidationError("No pending 2FA secret. Run the setup step first")
        if not totp.verify(user.two_factor_secret, token):
            raise ValidationError(INVALID_2FA_MESSAGE)

        codes = backup_codes.generate()
        await self.store.update_user(
            user.id,
            two_factor_enabled=True,
            two_factor_backup_codes=backup_codes.encrypt_codes(codes),
        )
        return codes

    async def disable(self, user: User, password: str, token: str | None) -> None:
        if not password:
            raise ValidationError("Password is required")
        if not verify_password(password, user.hashed_password):
            raise ValidationError("Incorrect password")

        if user.two_factor_enabled and user.two_factor_secret:
            if not token:
                raise ValidationError("2FA code required")
            await self.verify_for_user(user, token)

        await self.store.update_user(
            user.id,
            two_factor_enabled=False,
            two_factor_secret=None,
            two_factor_backup_codes=None,
        )

    def status(self, user: User) -> TwoFactorState:
        enabled = bool(user.two_factor_enabled and user.two_factor_secret)
        remaining = len(backup_codes.decrypt_codes(user.two_factor_backup_codes)) if enabled else 0
        return TwoFactorState(enabled=enabled, remaining_backup_codes=remaining)
