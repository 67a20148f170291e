# contract_runtime/core/store/resource_store.py
"""
Persistence store for one resource.

Records are opaque JSON objects keyed by `id`. The store assigns `id`,
`createdAt` and `updatedAt`; callers never set them. Listing always orders by
createdAt descending, with ties broken by insertion order (newest first),
before offset/limit are applied.

Usage:
    store = registry.open("tasks")

    task = store.insert({"title": "Write docs"})
    store.find_by_id(task["id"])
    store.find_all(parse_query("status:pending"), limit=25, offset=0)
    store.update(task["id"], {"title": "Write better docs"})
    store.remove(task["id"])          # True, then False on the second call

Read-modify-write:
    update_with(id, mutator) runs the whole read -> mutate -> write sequence
    while holding a per-record lock, so two trigger calls on the same record
    cannot interleave between guard evaluation and persistence. The mutator
    may raise to abort; nothing is written in that case.
"""

import copy
import json
import logging
import threading
import uuid
from contextlib import contextmanager, nullcontext
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence

from sqlalchemy import delete, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from ..database import Base, ResourceRecord
from ..errors import ConflictError
from ..query.parser import SearchCondition
from ..query.search import matches
from ..shared.timestamps import utc_now_iso

logger = logging.getLogger("contract_runtime.store")

SERVER_FIELDS = ("id", "createdAt", "updatedAt")


@dataclass
class FindResult:
    items: List[Dict[str, Any]] = field(default_factory=list)
    total: int = 0


class ResourceStore:
    """SQLite-backed record store for a single resource."""

    def __init__(self, name: str, engine: Engine, serialize_sessions: bool = False):
        self.name = name
        self._engine = engine
        # A shared in-memory connection must not run two transactions at once
        self._session_lock = threading.RLock() if serialize_sessions else nullcontext()
        self._session_factory = sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)
        self._lock = threading.RLock()
        self._record_locks: Dict[str, threading.RLock] = {}
        Base.metadata.create_all(engine)

    # =========================================================================
    # Sessions and locks
    # =========================================================================

    @contextmanager
    def get_session(self) -> Iterator[Session]:
        """Session that commits on success and rolls back on error."""
        with self._session_lock:
            session = self._session_factory()
            try:
                yield session
                session.commit()
            except Exception:
                session.rollback()
                raise
            finally:
                session.close()

    @contextmanager
    def lock_record(self, record_id: str) -> Iterator[None]:
        with self._lock:
            lock = self._record_locks.setdefault(record_id, threading.RLock())
        with lock:
            yield

    # =========================================================================
    # Writes
    # =========================================================================

    def insert(self, record: Dict[str, Any]) -> Dict[str, Any]:
        """Store a new record with a fresh id and timestamps."""
        now = utc_now_iso()
        stored = dict(record)
        stored["id"] = str(uuid.uuid4())
        stored["createdAt"] = now
        stored["updatedAt"] = now
        self._add(stored)
        logger.debug(f"Inserted {self.name}/{stored['id']}")
        return stored

    def insert_seed(self, record: Dict[str, Any], created_at: Optional[str] = None) -> Dict[str, Any]:
        """
        Import a record that already has an id (example data, resets).

        Missing timestamps are filled from created_at (or now). An existing
        record with the same id is replaced.
        """
        if not record.get("id"):
            raise ValueError(f"Seed record for {self.name} has no id")
        stored = dict(record)
        stored["id"] = str(stored["id"])
        stored.setdefault("createdAt", created_at or utc_now_iso())
        stored.setdefault("updatedAt", stored["createdAt"])

        with self.lock_record(stored["id"]):
            with self.get_session() as session:
                row = self._get_row(session, stored["id"])
                if row is None:
                    session.add(self._to_row(stored))
                else:
                    row.created_at = stored["createdAt"]
                    row.data = json.dumps(stored)
        return stored

    def update(self, record_id: str, partial: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Shallow-merge partial into the record. None if the id is unknown."""
        def merge(current: Dict[str, Any]) -> Dict[str, Any]:
            current.update(partial)
            return current

        return self.update_with(record_id, merge)

    def update_with(
        self,
        record_id: str,
        mutator: Callable[[Dict[str, Any]], Dict[str, Any]],
    ) -> Optional[Dict[str, Any]]:
        """
        Atomically replace a record with mutator(copy_of_record).

        `id` and `createdAt` are restored after the mutator runs and
        `updatedAt` is refreshed. Returns None if the id is unknown.
        """
        with self.lock_record(record_id):
            current = self.find_by_id(record_id)
            if current is None:
                return None

            updated = mutator(copy.deepcopy(current))
            updated["id"] = current["id"]
            updated["createdAt"] = current.get("createdAt")
            updated["updatedAt"] = utc_now_iso()

            with self.get_session() as session:
                row = self._get_row(session, record_id)
                if row is None:
                    return None
                row.data = json.dumps(updated)
        return updated

    def remove(self, record_id: str) -> bool:
        """Delete a record. Removing an unknown id returns False."""
        with self.lock_record(record_id):
            with self.get_session() as session:
                result = session.execute(delete(ResourceRecord).where(ResourceRecord.id == record_id))
                removed = result.rowcount > 0
        if removed:
            with self._lock:
                self._record_locks.pop(record_id, None)
        return removed

    def clear(self) -> int:
        """Delete every record; returns how many were removed."""
        with self._lock:
            with self.get_session() as session:
                result = session.execute(delete(ResourceRecord))
            self._record_locks.clear()
        return result.rowcount or 0

    # =========================================================================
    # Reads
    # =========================================================================

    def find_by_id(self, record_id: str) -> Optional[Dict[str, Any]]:
        with self.get_session() as session:
            row = self._get_row(session, record_id)
            return json.loads(row.data) if row is not None else None

    def find_all(
        self,
        conditions: Optional[Sequence[SearchCondition]] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> FindResult:
        """Ordered page of records matching every condition, plus the total."""
        stmt = select(ResourceRecord).order_by(
            ResourceRecord.created_at.desc(), ResourceRecord.seq.desc()
        )
        with self.get_session() as session:
            if not conditions:
                total = session.scalar(select(func.count()).select_from(ResourceRecord)) or 0
                page = stmt.offset(offset)
                if limit is not None:
                    page = page.limit(limit)
                return FindResult([json.loads(r.data) for r in session.scalars(page)], total)

            matched = [
                record
                for record in (json.loads(r.data) for r in session.scalars(stmt))
                if matches(record, conditions)
            ]
        end = offset + limit if limit is not None else None
        return FindResult(matched[offset:end], len(matched))

    def find_first(self, criteria: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """First record (in listing order) whose fields equal every criteria value."""
        with self.get_session() as session:
            stmt = select(ResourceRecord).order_by(
                ResourceRecord.created_at.desc(), ResourceRecord.seq.desc()
            )
            for row in session.scalars(stmt):
                record = json.loads(row.data)
                if all(record.get(k) == v for k, v in criteria.items()):
                    return record
        return None

    def count(self) -> int:
        with self.get_session() as session:
            return session.scalar(select(func.count()).select_from(ResourceRecord)) or 0

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def close(self) -> None:
        self._engine.dispose()

    def __repr__(self) -> str:
        return f"<ResourceStore(name={self.name}, url={self._engine.url})>"

    # =========================================================================
    # Helpers
    # =========================================================================

    def _add(self, stored: Dict[str, Any]) -> None:
        try:
            with self.get_session() as session:
                session.add(self._to_row(stored))
                session.flush()
        except IntegrityError as e:
            raise ConflictError(f"{self.name} record {stored['id']} already exists") from e

    @staticmethod
    def _get_row(session: Session, record_id: str) -> Optional[ResourceRecord]:
        return session.scalars(
            select(ResourceRecord).where(ResourceRecord.id == record_id)
        ).first()

    @staticmethod
    def _to_row(record: Dict[str, Any]) -> ResourceRecord:
        return ResourceRecord(
            id=record["id"],
            created_at=record["createdAt"],
            data=json.dumps(record),
        )
