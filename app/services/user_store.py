# app/services/user_store.py
from datetime import datetime, timezone
from typing import Any, Protocol

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value
from sqlalchemy.orm.util import identity_key

from app.models.user import User


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    # SQLite devuelve datetimes naive aunque la columna sea timezone=True
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


class UserStore(Protocol):
    """What the credential-security code needs from persistence."""

    async def find_user_by_email(self, email: str) -> User | None: ...

    async def find_user_by_id(self, user_id: str) -> User | None: ...

    async def update_user(self, user_id: str, **fields: Any) -> None: ...

    async def update_user_if(self, user_id: str, expected: dict[str, Any], **fields: Any) -> bool: ...

    async def add_user(self, user: User) -> User: ...


class SqlUserStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_user_by_email(self, email: str) -> User | None:
        res = await self.db.execute(select(User).where(User.email == email.strip().lower()))
        return res.scalar_one_or_none()

    async def find_user_by_id(self, user_id: str) -> User | None:
        return await self.db.get(User, user_id)

    async def update_user(self, user_id: str, **fields: Any) -> None:
        try:
            await self.db.execute(
                update(User).where(User.id == user_id).values(**fields).execution_options(synchronize_session="fetch")
            )
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise

    async def update_user_if(self, user_id: str, expected: dict[str, Any], **fields: Any) -> bool:
        """
        Compare-and-swap: writes ``fields`` only if every column in ``expected``
        still holds that value. Returns False when another writer got there first.
        """
        conditions = [User.id == user_id]
        for name, value in expected.items():
            column = getattr(User, name)
            conditions.append(column.is_(None) if value is None else column == value)
        try:
            res = await self.db.execute(
                update(User).where(*conditions).values(**fields).execution_options(synchronize_session=False)
            )
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise
        if res.rowcount != 1:
            return False

        # sin marcar la instancia como dirty
        cached = self.db.identity_map.get(identity_key(User, user_id))
        if cached is not None:
            for name, value in fields.items():
                set_committed_value(cached, name, value)
        return True

    async def add_user(self, user: User) -> User:
        self.db.add(user)
        await self.db.commit()
        await self.db.refresh(user)
        return user
