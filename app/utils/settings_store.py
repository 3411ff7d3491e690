"""
Key/value settings storage.

SettingsStore is the narrow interface the Ecobee controller persists through
(client id, API base, pin code, refresh token, sensors-only flag).
DatabaseSettingsStore backs it with the settings table;
MemorySettingsStore keeps values in a dict.
"""

from typing import Dict, Optional, Protocol

from sqlalchemy import delete, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models.database import Setting


class SettingsStore(Protocol):
    """String key/value store. Missing keys read as None."""

    async def get(self, key: str) -> Optional[str]:
        ...

    async def set(self, key: str, value: str) -> None:
        ...

    async def delete(self, key: str) -> None:
        ...


class DatabaseSettingsStore:
    """
    Manages settings in the database settings table.

    Examples of keys:
    - client_id
    - api_base
    - ecobee_code
    - refresh_token
    - sensors_only
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        """
        Initialize settings store.

        Args:
            session_factory: SQLAlchemy async session factory. A session is
                opened per operation so the store can outlive requests.
        """
        self.session_factory = session_factory

    async def get(self, key: str) -> Optional[str]:
        """
        Get setting value from database.

        Args:
            key: Setting key (e.g., 'refresh_token')

        Returns:
            Setting value as string, or None if not found
        """
        async with self.session_factory() as db:
            result = await db.execute(
                select(Setting.value).where(Setting.key == key)
            )
            return result.scalar_one_or_none()

    async def set(self, key: str, value: str) -> None:
        """
        Store or update setting in database (upsert).

        Args:
            key: Setting key
            value: Setting value
        """
        stmt = insert(Setting).values(key=key, value=value)
        stmt = stmt.on_conflict_do_update(
            index_elements=[Setting.key],
            set_={"value": value}
        )
        async with self.session_factory() as db:
            await db.execute(stmt)
            await db.commit()

    async def delete(self, key: str) -> None:
        """
        Remove setting from database.

        Args:
            key: Setting key to delete
        """
        async with self.session_factory() as db:
            await db.execute(
                delete(Setting).where(Setting.key == key)
            )
            await db.commit()


class MemorySettingsStore:
    """In-process settings store, used by tests and when no database is configured."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._values: Dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> Optional[str]:
        return self._values.get(key)

    async def set(self, key: str, value: str) -> None:
        self._values[key] = value

    async def delete(self, key: str) -> None:
        self._values.pop(key, None)

    def snapshot(self) -> Dict[str, str]:
        return dict(self._values)
