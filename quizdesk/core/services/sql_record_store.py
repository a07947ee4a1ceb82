"""Record store persisted through SQLAlchemy (SQLite by default)."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
import logging
from threading import RLock

from sqlalchemy import JSON, Boolean, Column, ForeignKey, Integer, String, Text, create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from quizdesk.core.errors import NotFound, StorageUnavailable
from quizdesk.core.models import Identity
from quizdesk.core.services.record_store import (
    ATTEMPTS,
    PROFILES,
    QUESTIONS,
    QUIZZES,
    Record,
    RecordStore,
)

logger = logging.getLogger(__name__)

Base = declarative_base()


class QuizRow(Base):
    __tablename__ = QUIZZES
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True)
    title = Column(String(255), nullable=False)
    created_by = Column(String(255), nullable=False, index=True)
    created_at = Column(String(40))


class QuestionRow(Base):
    __tablename__ = QUESTIONS
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True)
    quiz_id = Column(Integer, ForeignKey(f"{QUIZZES}.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    type = Column(String(32), nullable=False)
    text = Column(Text, nullable=False)
    options = Column(JSON, nullable=False, default=list)
    correct_answer = Column(Integer, nullable=False, default=0)


class AttemptRow(Base):
    __tablename__ = ATTEMPTS
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True)
    quiz_id = Column(Integer, ForeignKey(f"{QUIZZES}.id"), nullable=False, index=True)
    student_id = Column(String(255), nullable=False, index=True)
    selected_answers = Column(JSON, nullable=False, default=dict)
    completed = Column(Boolean, nullable=False, default=False)
    score = Column(Integer)
    started_at = Column(String(40))
    completed_at = Column(String(40))


class ProfileRow(Base):
    __tablename__ = PROFILES
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True)
    user_id = Column(String(255), nullable=False, unique=True)
    role = Column(String(16), nullable=False)
    display_name = Column(String(255), nullable=False, default="")


_MODELS = {
    QUIZZES: QuizRow,
    QUESTIONS: QuestionRow,
    ATTEMPTS: AttemptRow,
    PROFILES: ProfileRow,
}


class SqlRecordStore(RecordStore):
    """Stores each collection in its own table.

    Every standalone write is its own transaction. Inside ``transaction()`` all
    writes share one session and are committed or rolled back together.
    Database errors surface as ``StorageUnavailable``.
    """

    def __init__(self, database_url: str, identity: Identity | None = None) -> None:
        super().__init__(identity=identity)
        self._database_url = database_url
        self._engine = create_engine(database_url, **_engine_options(database_url))
        try:
            Base.metadata.create_all(self._engine)
        except SQLAlchemyError as exc:
            logger.error("Could not prepare database %s: %s", database_url, exc)
            raise StorageUnavailable(f"Could not open database {database_url}.") from exc
        self._session_factory = sessionmaker(bind=self._engine, expire_on_commit=False)
        self._lock = RLock()
        self._session: Session | None = None

    @property
    def database_url(self) -> str:
        return self._database_url

    def dispose(self) -> None:
        self._engine.dispose()

    @contextmanager
    def transaction(self) -> Iterator[None]:
        with self._lock:
            if self._session is not None:
                yield
                return
            session = self._session_factory()
            self._session = session
            try:
                yield
                session.commit()
            except SQLAlchemyError as exc:
                session.rollback()
                logger.error("Database write failed on %s: %s", self._database_url, exc)
                raise StorageUnavailable("The database rejected the write.") from exc
            except Exception:
                session.rollback()
                raise
            finally:
                self._session = None
                session.close()

    def create_record(self, collection: str, fields: Record) -> Record:
        model = _model_for(collection)
        with self.transaction():
            row = model(**{key: value for key, value in fields.items() if key != "id"})
            self._session.add(row)
            self._session.flush()
            return _to_record(row)

    def read_record(self, collection: str, filters: Record) -> Record | None:
        model = _model_for(collection)
        with self.transaction():
            row = self._session.query(model).filter_by(**filters).order_by(model.id).first()
            return _to_record(row) if row is not None else None

    def update_record(self, collection: str, record_id: int, fields: Record) -> None:
        model = _model_for(collection)
        with self.transaction():
            row = self._session.get(model, record_id)
            if row is None:
                raise NotFound(f"No {collection} record with id {record_id}.")
            for key, value in fields.items():
                if key == "id":
                    continue
                if key not in model.__table__.columns:
                    raise ValueError(f"{collection} has no field {key!r}.")
                setattr(row, key, value)

    def delete_record(self, collection: str, record_id: int) -> None:
        model = _model_for(collection)
        with self.transaction():
            row = self._session.get(model, record_id)
            if row is None:
                raise NotFound(f"No {collection} record with id {record_id}.")
            self._session.delete(row)

    def list_records(
        self,
        collection: str,
        filters: Record | None = None,
        order_by: str | None = None,
        descending: bool = False,
    ) -> list[Record]:
        model = _model_for(collection)
        with self.transaction():
            query = self._session.query(model).filter_by(**(filters or {}))
            ordering = [model.__table__.columns[order_by]] if order_by else []
            ordering.append(model.id)
            if descending:
                ordering = [column.desc() for column in ordering]
            return [_to_record(row) for row in query.order_by(*ordering)]


def _model_for(collection: str):
    try:
        return _MODELS[collection]
    except KeyError:
        raise ValueError(f"Unknown collection {collection!r}.") from None


def _to_record(row) -> Record:
    return {column.name: getattr(row, column.name) for column in row.__table__.columns}


def _engine_options(database_url: str) -> dict:
    if database_url in ("sqlite://", "sqlite:///:memory:"):
        # One shared connection, otherwise every connection opens an empty database.
        return {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}
    return {}
