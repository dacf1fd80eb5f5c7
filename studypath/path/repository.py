"""
Session persistence.

A store keeps whole session snapshots keyed by session id. Every ``put``
returns the snapshot as stored: ``last_accessed`` refreshed and ``revision``
incremented. Three backends are provided:

- InMemorySessionStore: process-local, for tests and throwaway runs
- JsonFileSessionStore: one ``{session_id}.json`` per session
- SqlSessionStore: SQLAlchemy table of JSON documents

SessionRepository wraps a store and translates misses and backend errors
into SessionNotFound / PersistenceFailed.
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Protocol

from loguru import logger
from pydantic import ValidationError
from sqlalchemy import Engine, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from config import Settings, get_settings
from studypath.core.errors import PersistenceFailed, SessionNotFound
from studypath.db.database import create_db_engine, init_db, session_scope
from studypath.db.models import LearningSessionRecord
from studypath.path.models import Session, SessionSummary, utcnow

# Errors a backend may raise that mean "the store failed", not "bad input"
STORE_ERRORS = (OSError, SQLAlchemyError, ValueError)


class SessionStore(Protocol):
    """Key-value document store for session snapshots."""

    def get(self, session_id: str) -> Session | None: ...

    def put(self, session: Session) -> Session: ...

    def delete(self, session_id: str) -> bool: ...

    def list_sessions(self) -> list[Session]: ...


def _stamp(session: Session) -> Session:
    """Return the snapshot as it will be stored."""
    return session.model_copy(
        update={"last_accessed": utcnow(), "revision": session.revision + 1},
        deep=True,
    )


def _newest_first(sessions: list[Session]) -> list[Session]:
    return sorted(sessions, key=lambda s: s.last_accessed, reverse=True)


class InMemorySessionStore:
    """Stores serialized documents in a dict, so reads never alias writes."""

    def __init__(self):
        self._documents: dict[str, str] = {}

    def get(self, session_id: str) -> Session | None:
        document = self._documents.get(session_id)
        if document is None:
            return None
        return Session.model_validate_json(document)

    def put(self, session: Session) -> Session:
        stored = _stamp(session)
        self._documents[stored.id] = stored.model_dump_json(by_alias=True)
        return stored

    def delete(self, session_id: str) -> bool:
        return self._documents.pop(session_id, None) is not None

    def list_sessions(self) -> list[Session]:
        return _newest_first([Session.model_validate_json(doc) for doc in self._documents.values()])


class JsonFileSessionStore:
    """
    Stores sessions as JSON files: {session_dir}/{session_id}.json

    Writes go to a temporary file first and are moved into place, so a
    reader never sees a half-written snapshot.
    """

    def __init__(self, session_dir: Path | str | None = None):
        self.session_dir = Path(session_dir or get_settings().session_dir)
        self.session_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, session_id: str) -> Path:
        filepath = self.session_dir / f"{session_id}.json"
        if not session_id or filepath.parent != self.session_dir or Path(session_id).name != session_id:
            raise ValueError(f"Invalid session id: {session_id!r}")
        return filepath

    def get(self, session_id: str) -> Session | None:
        filepath = self._path(session_id)
        if not filepath.exists():
            return None
        return Session.model_validate_json(filepath.read_text(encoding="utf-8"))

    def put(self, session: Session) -> Session:
        stored = _stamp(session)
        target = self._path(stored.id)
        fd, tmp_name = tempfile.mkstemp(dir=self.session_dir, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(stored.model_dump_json(by_alias=True, indent=2))
            os.replace(tmp_name, target)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        return stored

    def delete(self, session_id: str) -> bool:
        filepath = self._path(session_id)
        if filepath.exists():
            filepath.unlink()
            return True
        return False

    def list_sessions(self) -> list[Session]:
        sessions = []
        for filepath in self.session_dir.glob("*.json"):
            try:
                sessions.append(Session.model_validate_json(filepath.read_text(encoding="utf-8")))
            except (OSError, ValidationError) as e:
                logger.warning(f"Skipping unreadable session file {filepath.name}: {e}")
        return _newest_first(sessions)


class SqlSessionStore:
    """Stores sessions in the learning_sessions table."""

    def __init__(self, database_url: str | None = None, engine: Engine | None = None):
        self.engine = engine or create_db_engine(database_url)
        init_db(self.engine)
        self._factory = sessionmaker(bind=self.engine, autoflush=False, expire_on_commit=False)

    def get(self, session_id: str) -> Session | None:
        with session_scope(self._factory) as db:
            record = db.get(LearningSessionRecord, session_id)
            if record is None:
                return None
            return Session.model_validate_json(record.document)

    def put(self, session: Session) -> Session:
        stored = _stamp(session)
        document = stored.model_dump_json(by_alias=True)

        with session_scope(self._factory) as db:
            record = db.get(LearningSessionRecord, stored.id)
            if record is None:
                record = LearningSessionRecord(id=stored.id, topic=stored.topic, created_at=stored.created_at)
                db.add(record)
            record.document = document
            record.revision = stored.revision
            record.last_accessed = stored.last_accessed

        return stored

    def delete(self, session_id: str) -> bool:
        with session_scope(self._factory) as db:
            record = db.get(LearningSessionRecord, session_id)
            if record is None:
                return False
            db.delete(record)
            return True

    def list_sessions(self) -> list[Session]:
        with session_scope(self._factory) as db:
            documents = db.scalars(
                select(LearningSessionRecord.document).order_by(LearningSessionRecord.last_accessed.desc())
            ).all()
        return [Session.model_validate_json(document) for document in documents]


def create_store(settings: Settings | None = None) -> SessionStore:
    """Build the store selected by settings.store_backend."""
    settings = settings or get_settings()
    if settings.store_backend == "memory":
        return InMemorySessionStore()
    if settings.store_backend == "json":
        return JsonFileSessionStore(settings.session_dir)
    return SqlSessionStore(settings.database_url)


class SessionRepository:
    """Loads and saves whole session snapshots through a store."""

    def __init__(self, store: SessionStore):
        self.store = store

    def load(self, session_id: str) -> Session:
        """Return the stored snapshot or raise SessionNotFound."""
        try:
            session = self.store.get(session_id)
        except STORE_ERRORS as e:
            logger.error(f"Failed to read session {session_id}: {e}")
            raise PersistenceFailed(str(e)) from e

        if session is None:
            raise SessionNotFound(session_id)
        return session

    def exists(self, session_id: str) -> bool:
        try:
            return self.store.get(session_id) is not None
        except STORE_ERRORS as e:
            raise PersistenceFailed(str(e)) from e

    def save(self, session: Session) -> Session:
        """
        Write a snapshot and return it as stored.

        Raises:
            PersistenceFailed: carrying the unpersisted snapshot
        """
        try:
            stored = self.store.put(session)
        except STORE_ERRORS as e:
            logger.error(f"Failed to persist session {session.id}: {e}")
            raise PersistenceFailed(str(e), session=session) from e

        logger.debug(f"Persisted session {stored.id} at revision {stored.revision}")
        return stored

    def delete(self, session_id: str) -> None:
        try:
            deleted = self.store.delete(session_id)
        except STORE_ERRORS as e:
            raise PersistenceFailed(str(e)) from e
        if not deleted:
            raise SessionNotFound(session_id)

    def summaries(self) -> list[SessionSummary]:
        try:
            sessions = self.store.list_sessions()
        except STORE_ERRORS as e:
            raise PersistenceFailed(str(e)) from e
        return [SessionSummary.from_session(session) for session in sessions]
