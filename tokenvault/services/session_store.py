from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Dict, Iterator, Optional, Protocol
from uuid import UUID

from sqlalchemy import delete, update
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlmodel import Session

from tokenvault.core.errors import StoreConflict, StoreUnavailable
from tokenvault.models.session_record import SessionRecord

log = logging.getLogger(__name__)


class SessionRecordStore(Protocol):
    """Persistence contract the token service relies on.

    ``revoke_one_active`` and ``revoke_all_active_for_subject`` must each be a
    single atomic conditional update; concurrent rotations of the same token are
    serialised by them and nothing else.
    """

    def create(self, record: SessionRecord) -> None: ...

    def find_by_digest(self, digest: str) -> Optional[SessionRecord]: ...

    def save(self, record: SessionRecord) -> None: ...

    def revoke_one_active(self, digest: str, now: datetime) -> bool: ...

    def revoke_all_active_for_subject(self, subject: UUID, now: datetime) -> int: ...

    def purge_expired(self, now: datetime) -> int: ...


class SqlSessionStore:
    def __init__(self, db: Session) -> None:
        self.db = db

    @contextmanager
    def _guard(self) -> Iterator[None]:
        try:
            yield
        except OperationalError as exc:
            self.db.rollback()
            raise StoreUnavailable("session store unavailable") from exc

    def create(self, record: SessionRecord) -> None:
        with self._guard():
            self.db.add(record)
            try:
                self.db.commit()
            except IntegrityError as exc:
                self.db.rollback()
                raise StoreConflict("token digest already exists") from exc

    def find_by_digest(self, digest: str) -> Optional[SessionRecord]:
        with self._guard():
            return self.db.get(SessionRecord, digest)

    def save(self, record: SessionRecord) -> None:
        with self._guard():
            self.db.add(record)
            self.db.commit()

    def revoke_one_active(self, digest: str, now: datetime) -> bool:
        stmt = (
            update(SessionRecord)
            .where(
                SessionRecord.token_digest == digest,
                SessionRecord.revoked_at.is_(None),
                SessionRecord.expires_at > now,
            )
            .values(revoked_at=now)
        )
        with self._guard():
            result = self.db.connection().execute(stmt)
            self.db.commit()
        return result.rowcount == 1

    def revoke_all_active_for_subject(self, subject: UUID, now: datetime) -> int:
        stmt = (
            update(SessionRecord)
            .where(
                SessionRecord.subject == subject,
                SessionRecord.revoked_at.is_(None),
                SessionRecord.expires_at > now,
            )
            .values(revoked_at=now)
        )
        with self._guard():
            result = self.db.connection().execute(stmt)
            self.db.commit()
        return result.rowcount

    def purge_expired(self, now: datetime) -> int:
        stmt = delete(SessionRecord).where(SessionRecord.expires_at <= now)
        with self._guard():
            result = self.db.connection().execute(stmt)
            self.db.commit()
        if result.rowcount:
            log.info("purged %d expired session records", result.rowcount)
        return result.rowcount


def _copy(record: SessionRecord) -> SessionRecord:
    return SessionRecord(**record.model_dump())


class InMemorySessionStore:
    """Process-local store with the same atomicity guarantees as the SQL one.

    Records are copied on the way in and out so callers only see changes they
    explicitly ``save``.
    """

    def __init__(self) -> None:
        self._records: Dict[str, SessionRecord] = {}
        self._lock = threading.Lock()

    def create(self, record: SessionRecord) -> None:
        with self._lock:
            if record.token_digest in self._records:
                raise StoreConflict("token digest already exists")
            self._records[record.token_digest] = _copy(record)

    def find_by_digest(self, digest: str) -> Optional[SessionRecord]:
        with self._lock:
            row = self._records.get(digest)
            return _copy(row) if row is not None else None

    def save(self, record: SessionRecord) -> None:
        with self._lock:
            if record.token_digest in self._records:
                self._records[record.token_digest] = _copy(record)

    def revoke_one_active(self, digest: str, now: datetime) -> bool:
        with self._lock:
            row = self._records.get(digest)
            if row is None or not row.is_active(now):
                return False
            row.revoked_at = now
            return True

    def revoke_all_active_for_subject(self, subject: UUID, now: datetime) -> int:
        count = 0
        with self._lock:
            for row in self._records.values():
                if row.subject == subject and row.is_active(now):
                    row.revoked_at = now
                    count += 1
        return count

    def purge_expired(self, now: datetime) -> int:
        with self._lock:
            expired = [d for d, row in self._records.items() if row.is_expired(now)]
            for d in expired:
                del self._records[d]
        return len(expired)

    def active_for_subject(self, subject: UUID, now: datetime) -> list[SessionRecord]:
        with self._lock:
            return [
                _copy(row)
                for row in self._records.values()
                if row.subject == subject and row.is_active(now)
            ]

    def __len__(self) -> int:
        return len(self._records)
