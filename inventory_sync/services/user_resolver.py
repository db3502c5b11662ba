"""
Resolve internal user ids against the ``users`` table owned by the auth service.
"""
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from inventory_sync.core.exceptions import UserNotFoundError
from inventory_sync.models.inventory import User
from inventory_sync.models.sync import UserIdentity


class UserResolver(Protocol):
    async def resolve(self, user_id: str) -> UserIdentity:
        ...


class SqlUserResolver:
    """Looks up Steam ID and last login. Raises UserNotFoundError for unknown ids."""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def resolve(self, user_id: str) -> UserIdentity:
        stmt = select(User.id, User.steam_id, User.last_login).where(User.id == user_id)
        async with self.session_factory() as session:
            row = (await session.execute(stmt)).one_or_none()

        if row is None or not row.steam_id:
            raise UserNotFoundError(user_id)

        return UserIdentity(user_id=row.id, steam_id=row.steam_id, last_login=row.last_login)
