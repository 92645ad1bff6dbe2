"""
Document database addressed by (collection, id).

Documents are plain JSON-compatible dicts. Live queries are delivered through
``subscribe``: the callback receives the full matching snapshot once on
subscription and again after every write to the collection, until the
returned handle is unsubscribed.
"""
import secrets
import string
from dataclasses import dataclass, field
from typing import Any, Callable

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from vehiscan.core.exceptions import DocumentNotFound, StorageUnavailable
from vehiscan.core.logging import get_security_logger
from vehiscan.db.models import DocumentRecord

ID_ALPHABET = string.ascii_letters + string.digits
ID_LENGTH = 20

sec_logger = get_security_logger()

Snapshot = list[dict[str, Any]]


def new_document_id(length: int = ID_LENGTH) -> str:
    return "".join(secrets.choice(ID_ALPHABET) for _ in range(length))


@dataclass(eq=False)
class Subscription:
    collection: str
    filters: dict[str, Any]
    callback: Callable[[Snapshot], None]
    _store: "SqlDocumentStore | None" = field(default=None, repr=False)

    @property
    def active(self) -> bool:
        return self._store is not None

    def unsubscribe(self) -> None:
        if self._store is not None:
            self._store._subscriptions.remove(self)
            self._store = None


class SqlDocumentStore:
    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory
        self._subscriptions: list[Subscription] = []

    def add(self, collection: str, data: dict[str, Any]) -> str:
        doc_id = new_document_id()
        self.set(collection, doc_id, data)
        return doc_id

    def set(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        try:
            with self._session_factory() as db:
                record = db.get(DocumentRecord, (collection, doc_id))
                if record:
                    record.data = dict(data)
                else:
                    db.add(DocumentRecord(collection=collection, id=doc_id, data=dict(data)))
                db.commit()
        except SQLAlchemyError as e:
            raise StorageUnavailable(f"Write failed: {e}", key=f"{collection}/{doc_id}") from e

        self._notify(collection)

    def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        try:
            with self._session_factory() as db:
                record = db.get(DocumentRecord, (collection, doc_id))
                return {**record.data, "id": record.id} if record else None
        except SQLAlchemyError as e:
            raise StorageUnavailable(f"Read failed: {e}", key=f"{collection}/{doc_id}") from e

    def update(self, collection: str, doc_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        current = self.get(collection, doc_id)
        if current is None:
            raise DocumentNotFound(collection, doc_id)

        current.pop("id", None)
        current.update(changes)
        self.set(collection, doc_id, current)
        return {**current, "id": doc_id}

    def delete(self, collection: str, doc_id: str) -> None:
        try:
            with self._session_factory() as db:
                record = db.get(DocumentRecord, (collection, doc_id))
                if record is None:
                    raise DocumentNotFound(collection, doc_id)
                db.delete(record)
                db.commit()
        except SQLAlchemyError as e:
            raise StorageUnavailable(f"Delete failed: {e}", key=f"{collection}/{doc_id}") from e

        self._notify(collection)

    def where(self, collection: str, **filters: Any) -> Snapshot:
        """Documents whose fields equal every given filter value."""
        try:
            with self._session_factory() as db:
                records = db.scalars(
                    select(DocumentRecord)
                    .where(DocumentRecord.collection == collection)
                    .order_by(DocumentRecord.created_at)
                ).all()
        except SQLAlchemyError as e:
            raise StorageUnavailable(f"Query failed: {e}", key=collection) from e

        return [
            {**r.data, "id": r.id}
            for r in records
            if all(r.data.get(k) == v for k, v in filters.items())
        ]

    def subscribe(
        self, collection: str, callback: Callable[[Snapshot], None], **filters: Any
    ) -> Subscription:
        subscription = Subscription(collection, filters, callback, _store=self)
        self._subscriptions.append(subscription)
        callback(self.where(collection, **filters))
        return subscription

    def _notify(self, collection: str) -> None:
        for subscription in list(self._subscriptions):
            if subscription.collection != collection:
                continue
            try:
                subscription.callback(self.where(collection, **subscription.filters))
            except StorageUnavailable as e:
                sec_logger.error(f"Snapshot delivery failed for {collection}: {e}")
