"""
Password reset: generic answers, token lifetime and single use.
"""
from datetime import timedelta
from urllib.parse import parse_qs, urlsplit

import pytest

from app.core.errors import ValidationError
from app.core.security import verify_password
from app.services.password_reset import GENERIC_RESET_MESSAGE, PasswordResetService
from app.services.user_store import utcnow


class Outbox:
    def __init__(self):
        self.sent: list[tuple[str, str]] = []

    async def __call__(self, email: str, url: str) -> None:
        self.sent.append((email, url))

    def last_token(self) -> str:
        return parse_qs(urlsplit(self.sent[-1][1]).query)["token"][0]


@pytest.fixture
def outbox():
    return Outbox()


@pytest.fixture
def resets(store, outbox):
    return PasswordResetService(store, send_reset_link=outbox)


@pytest.fixture
def reload(db_session):
    async def _reload(user):
        await db_session.refresh(user)
        return user
    return _reload


class TestRequestReset:
    async def test_unknown_email_same_answer(self, resets, outbox, make_user):
        await make_user()
        assert await resets.request_reset("nobody@prospecter.io") == GENERIC_RESET_MESSAGE
        assert await resets.request_reset("ana@prospecter.io") == GENERIC_RESET_MESSAGE
        assert len(outbox.sent) == 1

    async def test_stores_token_and_sends_link(self, resets, outbox, make_user, reload):
        user = await make_user()
        await resets.request_reset("ana@prospecter.io")
        user = await reload(user)

        email, url = outbox.sent[0]
        assert email == "ana@prospecter.io"
        assert "/auth/reset-password?" in url
        assert outbox.last_token() == user.reset_token
        assert len(user.reset_token) == 64
        assert user.reset_token_expires is not None

    async def test_same_request_path_work_for_known_and_unknown(self, store, outbox, make_user):
        await make_user()

        class CountingStore:
            def __init__(self, inner):
                self.inner = inner
                self.calls: list[str] = []

            def __getattr__(self, name):
                method = getattr(self.inner, name)

                async def _counted(*args, **kwargs):
                    self.calls.append(name)
                    return await method(*args, **kwargs)
                return _counted

        counting = CountingStore(store)
        resets = PasswordResetService(counting, send_reset_link=outbox)
        scheduled: list[tuple] = []

        def schedule(func, *args):
            scheduled.append((func, args))

        known = await resets.request_reset("ana@prospecter.io", schedule=schedule)
        unknown = await resets.request_reset("nobody@prospecter.io", schedule=schedule)

        assert known == unknown == GENERIC_RESET_MESSAGE
        # en el camino de la respuesta no hubo base de datos ni envío
        assert counting.calls == []
        assert outbox.sent == []
        assert [(f.__name__, args) for f, args in scheduled] == [
            ("issue_reset", ("ana@prospecter.io",)),
            ("issue_reset", ("nobody@prospecter.io",)),
        ]

        for func, args in scheduled:
            await func(*args)
        assert [email for email, _ in outbox.sent] == ["ana@prospecter.io"]

    async def test_email_required(self, resets):
        with pytest.raises(ValidationError):
            await resets.request_reset("")


class TestConfirmReset:
    async def test_happy_path_is_single_use(self, resets, outbox, make_user, reload):
        user = await make_user()
        await resets.request_reset(user.email)
        token = outbox.last_token()

        message = await resets.confirm_reset(token, user.email, "brand-new-password")
        assert message == "Password updated successfully"
        user = await reload(user)
        assert verify_password("brand-new-password", user.hashed_password)
        assert user.reset_token is None

        with pytest.raises(ValidationError):
            await resets.confirm_reset(token, user.email, "another-password")

    async def test_wrong_token(self, resets, outbox, make_user):
        user = await make_user()
        await resets.request_reset(user.email)
        with pytest.raises(ValidationError) as exc:
            await resets.confirm_reset("0" * 64, user.email, "brand-new-password")
        assert exc.value.message == "Invalid or expired token"

    async def test_token_bound_to_email(self, resets, outbox, make_user):
        await make_user(email="ana@prospecter.io")
        await make_user(email="beto@prospecter.io")
        await resets.request_reset("ana@prospecter.io")
        with pytest.raises(ValidationError):
            await resets.confirm_reset(outbox.last_token(), "beto@prospecter.io", "brand-new-password")

    async def test_expired_token(self, resets, outbox, make_user, store):
        user = await make_user()
        await resets.request_reset(user.email)
        token = outbox.last_token()
        await store.update_user(user.id, reset_token_expires=utcnow() - timedelta(seconds=1))
        with pytest.raises(ValidationError) as exc:
            await resets.confirm_reset(token, user.email, "brand-new-password")
        assert exc.value.message == "Invalid or expired token"

    async def test_short_password(self, resets, outbox, make_user):
        user = await make_user()
        await resets.request_reset(user.email)
        with pytest.raises(ValidationError):
            await resets.confirm_reset(outbox.last_token(), user.email, "short")

    async def test_unknown_email(self, resets):
        with pytest.raises(ValidationError) as exc:
            await resets.confirm_reset("a" * 64, "nobody@prospecter.io", "brand-new-password")
        assert exc.value.message == "Invalid or expired token"
