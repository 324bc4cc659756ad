# app/services/totp.py
import base64
import binascii
import time
from dataclasses import dataclass
from datetime import datetime
from io import BytesIO

import pyotp
import qrcode

from app.core.config import settings

TOTP_DIGITS = 6
TOTP_PERIOD = 30  # segundos
SECRET_LENGTH = 32


@dataclass
class TOTPEnrollment:
    secret: str
    provisioning_uri: str
    manual_entry_key: str


@dataclass
class TokenInfo:
    current_token: str
    time_remaining: int
    is_expiring_soon: bool


def _totp(secret: str) -> pyotp.TOTP:
    return pyotp.TOTP(secret, digits=TOTP_DIGITS, interval=TOTP_PERIOD)


def is_valid_secret(secret: str | None) -> bool:
    if not secret or not isinstance(secret, str):
        return False
    try:
        return len(_totp(secret).byte_secret()) > 0
    except (binascii.Error, ValueError, TypeError):
        return False


def generate_secret(identity_label: str) -> TOTPEnrollment:
    secret = pyotp.random_base32(length=SECRET_LENGTH)
    uri = _totp(secret).provisioning_uri(name=identity_label, issuer_name=settings.APP_NAME)
    return TOTPEnrollment(secret=secret, provisioning_uri=uri, manual_entry_key=secret)


def manual_entry_uri(email: str, secret: str) -> str:
    return _totp(secret).provisioning_uri(name=email, issuer_name=settings.APP_NAME)


def render_qr_code(provisioning_uri: str) -> str:
    """PNG data URI for the otpauth:// URI."""
    img = qrcode.make(provisioning_uri)
    buf = BytesIO()
    img.save(buf, "PNG")
    return "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode("ascii")


def verify(
    secret: str,
    token: str,
    window_steps: int | None = None,
    for_time: datetime | int | None = None,
) -> bool:
    """Accepts the current step and ``window_steps`` steps on either side."""
    if window_steps is None:
        window_steps = settings.TOTP_WINDOW_STEPS
    if not isinstance(token, str) or len(token) != TOTP_DIGITS or not token.isascii() or not token.isdigit():
        return False
    if not is_valid_secret(secret):
        return False
    return _totp(secret).verify(token, for_time=for_time, valid_window=window_steps)


def current_token(secret: str) -> str:
    return _totp(secret).now()


def time_remaining(now: float | None = None) -> int:
    now = time.time() if now is None else now
    return TOTP_PERIOD - int(now) % TOTP_PERIOD


def token_info(secret: str) -> TokenInfo:
    remaining = time_remaining()
    return TokenInfo(
        current_token=current_token(secret),
        time_remaining=remaining,
        is_expiring_soon=remaining < 10,
    )
