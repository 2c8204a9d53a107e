from contextlib import contextmanager
from functools import lru_cache
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, DeclarativeBase, Session
from roots.config import settings
from roots.db.breaker import CircuitBreaker
from roots.db.errors import backoff_seconds_for, classify_database_error

class Base(DeclarativeBase):
    pass


def normalize_url(url: str) -> str:
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+psycopg://", 1)
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+psycopg://", 1)
    return url


class Database:
    """Lazily connected storage handle guarded by a circuit breaker.

    Nothing connects until the first session is requested.
    """

    def __init__(self, url: str, breaker: CircuitBreaker, pool_backoff_seconds: float = 3):
        self.url = normalize_url(url)
        self.breaker = breaker
        self.pool_backoff_seconds = pool_backoff_seconds
        self._engine = None
        self._sessionmaker = None

    @property
    def engine(self):
        if self._engine is None:
            connect_args = {}
            if self.url.startswith("sqlite"):
                connect_args = {"check_same_thread": False}
            self._engine = create_engine(
                self.url,
                connect_args=connect_args,
                pool_pre_ping=True,
                future=True,
            )
        return self._engine

    @property
    def sessionmaker(self):
        if self._sessionmaker is None:
            self._sessionmaker = sessionmaker(
                autocommit=False,
                autoflush=False,
                bind=self.engine,
                future=True,
            )
        return self._sessionmaker

    @contextmanager
    def session(self) -> Iterator[Session]:
        self.breaker.guard()
        db = self.sessionmaker()
        try:
            yield db
        except SQLAlchemyError as exc:
            code = classify_database_error(exc)
            if code is not None:
                self.breaker.trip(
                    code,
                    backoff_seconds_for(exc, self.breaker.cooldown_seconds, self.pool_backoff_seconds),
                )
            raise
        else:
            self.breaker.reset()
        finally:
            db.close()

    def init_schema(self) -> None:
        from roots.models import activity_log, book, gallery, tree, user  # noqa: F401
        with self.session():
            Base.metadata.create_all(bind=self.engine)

    def dispose(self) -> None:
        if self._engine is not None:
            self._engine.dispose()


@lru_cache
def get_database() -> Database:
    url = settings.database_url or "sqlite:///./roots.db"
    breaker = CircuitBreaker(settings.db_backoff_seconds)
    return Database(url, breaker, pool_backoff_seconds=settings.db_pool_backoff_seconds)
