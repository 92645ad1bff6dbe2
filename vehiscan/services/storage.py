"""
Durable key-value storage used by the guards.

Values are opaque strings (the guards store JSON). Every backend failure is
re-raised as ``StorageUnavailable`` so callers only handle one error type.
"""
from typing import Iterable, Protocol

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from vehiscan.core.exceptions import StorageUnavailable
from vehiscan.db.models import KeyValueEntry


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...

    def keys(self, prefix: str = "") -> list[str]: ...

    def remove_many(self, keys: Iterable[str]) -> int: ...


class MemoryKeyValueStore:
    """Process-local store, used by tests and embedded callers."""

    def __init__(self):
        self._data: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self, prefix: str = "") -> list[str]:
        return [k for k in self._data if k.startswith(prefix)]

    def remove_many(self, keys: Iterable[str]) -> int:
        removed = 0
        for key in list(keys):
            if self._data.pop(key, None) is not None:
                removed += 1
        return removed


class SqlKeyValueStore:
    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def get(self, key: str) -> str | None:
        try:
            with self._session_factory() as db:
                entry = db.get(KeyValueEntry, key)
                return entry.value if entry else None
        except SQLAlchemyError as e:
            raise StorageUnavailable(f"Read failed: {e}", key=key) from e

    def set(self, key: str, value: str) -> None:
        try:
            with self._session_factory() as db:
                entry = db.get(KeyValueEntry, key)
                if entry:
                    entry.value = value
                else:
                    db.add(KeyValueEntry(key=key, value=value))
                db.commit()
        except SQLAlchemyError as e:
            raise StorageUnavailable(f"Write failed: {e}", key=key) from e

    def remove(self, key: str) -> None:
        try:
            with self._session_factory() as db:
                db.execute(delete(KeyValueEntry).where(KeyValueEntry.key == key))
                db.commit()
        except SQLAlchemyError as e:
            raise StorageUnavailable(f"Delete failed: {e}", key=key) from e

    def keys(self, prefix: str = "") -> list[str]:
        stmt = select(KeyValueEntry.key)
        if prefix:
            stmt = stmt.where(KeyValueEntry.key.startswith(prefix, autoescape=True))
        try:
            with self._session_factory() as db:
                return list(db.scalars(stmt).all())
        except SQLAlchemyError as e:
            raise StorageUnavailable(f"Key listing failed: {e}") from e

    def remove_many(self, keys: Iterable[str]) -> int:
        keys = list(keys)
        if not keys:
            return 0
        try:
            with self._session_factory() as db:
                result = db.execute(delete(KeyValueEntry).where(KeyValueEntry.key.in_(keys)))
                db.commit()
                return result.rowcount or 0
        except SQLAlchemyError as e:
            raise StorageUnavailable(f"Bulk delete failed: {e}") from e
