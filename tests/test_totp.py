"""
TOTP engine: enrollment material and the verification window.
"""
from urllib.parse import parse_qs, unquote, urlsplit

import pyotp
import pytest

from app.core.config import settings
from app.services import totp

SECRET = "JBSWY3DPEHPK3PXPJBSWY3DPEHPK3PXP"
T0 = 1_700_000_010  # mitad de un paso de 30 s


def token_at(offset_steps: int) -> str:
    return pyotp.TOTP(SECRET).at(T0 + offset_steps * totp.TOTP_PERIOD)


class TestGenerateSecret:
    def test_secret_is_base32(self):
        enrollment = totp.generate_secret("ana@prospecter.io")
        assert len(enrollment.secret) == totp.SECRET_LENGTH
        assert totp.is_valid_secret(enrollment.secret)
        assert enrollment.manual_entry_key == enrollment.secret

    def test_provisioning_uri(self):
        enrollment = totp.generate_secret("ana@prospecter.io")
        parts = urlsplit(enrollment.provisioning_uri)
        assert parts.scheme == "otpauth"
        assert parts.netloc == "totp"
        assert "ana@prospecter.io" in unquote(parts.path)
        query = parse_qs(parts.query)
        assert query["secret"] == [enrollment.secret]
        assert query["issuer"] == [settings.APP_NAME]

    def test_secrets_differ(self):
        assert totp.generate_secret("a").secret != totp.generate_secret("a").secret

    def test_qr_code_is_png_data_uri(self):
        uri = totp.manual_entry_uri("ana@prospecter.io", SECRET)
        assert totp.render_qr_code(uri).startswith("data:image/png;base64,")


class TestVerify:
    """Window of +/- 2 steps around the current one."""

    @pytest.mark.parametrize("offset", [-2, -1, 0, 1, 2])
    def test_accepts_inside_window(self, offset):
        assert totp.verify(SECRET, token_at(offset), window_steps=2, for_time=T0)

    @pytest.mark.parametrize("offset", [-4, -3, 3, 4])
    def test_rejects_outside_window(self, offset):
        token = token_at(offset)
        # si por casualidad coincide con uno dentro de la ventana, el caso no aplica
        inside = {token_at(o) for o in range(-2, 3)}
        if token in inside:
            pytest.skip("token collides with one inside the window")
        assert not totp.verify(SECRET, token, window_steps=2, for_time=T0)

    def test_default_window_from_settings(self, monkeypatch):
        monkeypatch.setattr(settings, "TOTP_WINDOW_STEPS", 0)
        token = token_at(1)
        if token == token_at(0):
            pytest.skip("adjacent tokens collide")
        assert not totp.verify(SECRET, token, for_time=T0)
        assert totp.verify(SECRET, token_at(0), for_time=T0)

    @pytest.mark.parametrize("token", ["", "12345", "1234567", "12a456", "１２３４５６", None, 123456])
    def test_rejects_malformed_tokens(self, token):
        assert not totp.verify(SECRET, token, for_time=T0)

    @pytest.mark.parametrize("secret", ["", None, "not base32!!", "1"])
    def test_malformed_secret_fails_closed(self, secret):
        assert not totp.verify(secret, "123456", for_time=T0)

    def test_current_token_verifies(self):
        assert totp.verify(SECRET, totp.current_token(SECRET))


class TestTokenInfo:
    def test_time_remaining(self):
        assert totp.time_remaining(now=30.0) == 30
        assert totp.time_remaining(now=31.0) == 29
        assert totp.time_remaining(now=59.9) == 1

    def test_token_info(self):
        info = totp.token_info(SECRET)
        assert len(info.current_token) == 6
        assert 1 <= info.time_remaining <= 30
        assert info.is_expiring_soon == (info.time_remaining < 10)
