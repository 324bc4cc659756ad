from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.core.errors import AuthenticationError, PermissionDenied
from app.core.security import decode_access_token
from app.models.user import User, RoleEnum
from app.services.user_store import SqlUserStore
from app.services.two_factor import TwoFactorService
from app.services.password_reset import PasswordResetService


# auto_error=False: la falta de header se responde con el mismo formato {"message"}
bearer = HTTPBearer(auto_error=False)


def get_user_store(db: AsyncSession = Depends(get_db)) -> SqlUserStore:
    return SqlUserStore(db)


def get_two_factor_service(store: SqlUserStore = Depends(get_user_store)) -> TwoFactorService:
    return TwoFactorService(store)


def get_password_reset_service(store: SqlUserStore = Depends(get_user_store)) -> PasswordResetService:
    return PasswordResetService(store)


async def get_current_user(
    creds: HTTPAuthorizationCredentials | None = Depends(bearer),
    store: SqlUserStore = Depends(get_user_store),
) -> User:
    sub = decode_access_token(creds.credentials) if creds else None
    if not sub:
        raise AuthenticationError("Invalid token")

    user = await store.find_user_by_id(sub)
    if not user:
        raise AuthenticationError("Invalid token")

    if not user.is_active:
        raise PermissionDenied("Inactive user")

    return user

# --- Role-based dependency ---
def require_roles(*roles: RoleEnum):
    async def _guard(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            raise PermissionDenied()
        return user
    return _guard
