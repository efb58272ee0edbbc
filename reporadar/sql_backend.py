"""SQLAlchemy persistence for the repository cache."""

import threading
from collections.abc import Collection, Iterator
from contextlib import contextmanager, nullcontext
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, BigInteger, DateTime, String, create_engine, delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.pool import NullPool, StaticPool

from reporadar.cache import CacheBackend
from reporadar.exceptions import CacheError
from reporadar.logging import get_logger
from reporadar.types.cache import CacheEntry

logger = get_logger("cache")


class Base(DeclarativeBase):
    pass


class RepoCacheRecord(Base):
    __tablename__ = "repo_cache"

    github_repo_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    cached_data: Mapped[Any] = mapped_column(JSON, nullable=False)
    etag: Mapped[str | None] = mapped_column(String, nullable=True)
    fetched_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True
    )


def _create_engine(url: str):
    kwargs: dict[str, Any] = {"pool_pre_ping": True}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        # An in-memory database only lives as long as its single connection
        kwargs["poolclass"] = StaticPool if ":memory:" in url or url == "sqlite://" else NullPool
    return create_engine(url, **kwargs)


def _aware(value: datetime) -> datetime:
    # SQLite returns naive datetimes even for timezone=True columns
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _naive_utc(value: datetime) -> datetime:
    # Compare in UTC without tzinfo so SQLite's text ordering stays consistent
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.replace(tzinfo=None)


class SqlCacheBackend(CacheBackend):
    """
    Cache backend on any SQLAlchemy-supported database.

    Example:
        ```python
        from reporadar.cache import CacheStore
        from reporadar.sql_backend import SqlCacheBackend

        store = CacheStore(SqlCacheBackend("sqlite:///reporadar-cache.db"))
        ```
    """

    def __init__(self, url: str, create_schema: bool = True) -> None:
        self.url = url
        self.engine = _create_engine(url)
        # Calls arrive from worker threads; a shared single connection must not interleave
        self._lock = (
            threading.Lock() if isinstance(self.engine.pool, StaticPool) else nullcontext()
        )
        self._sessionmaker = sessionmaker(
            bind=self.engine, autocommit=False, autoflush=False, expire_on_commit=False
        )
        if create_schema:
            Base.metadata.create_all(bind=self.engine)

    def dispose(self) -> None:
        self.engine.dispose()

    @contextmanager
    def _session(self, operation: str) -> Iterator[Session]:
        with self._lock:
            session = self._sessionmaker()
            try:
                yield session
                session.commit()
            except SQLAlchemyError as e:
                session.rollback()
                logger.error("Failed to %s: %s", operation, e)
                raise CacheError(f"Failed to {operation}") from e
            finally:
                session.close()

    def _store_time(self, value: datetime) -> datetime:
        return _naive_utc(value) if self.engine.dialect.name == "sqlite" else value

    @staticmethod
    def _to_entry(row: RepoCacheRecord) -> CacheEntry:
        return CacheEntry(
            repo_id=row.github_repo_id,
            data=row.cached_data,
            etag=row.etag,
            fetched_at=_aware(row.fetched_at),
            expires_at=_aware(row.expires_at),
        )

    def fetch(self, repo_id: int, valid_at: datetime | None = None) -> CacheEntry | None:
        with self._session("fetch repo cache") as session:
            query = select(RepoCacheRecord).where(RepoCacheRecord.github_repo_id == repo_id)
            if valid_at is not None:
                query = query.where(RepoCacheRecord.expires_at > self._store_time(valid_at))
            row = session.scalars(query).one_or_none()
            return self._to_entry(row) if row is not None else None

    def fetch_many(self, repo_ids: Collection[int]) -> dict[int, CacheEntry]:
        with self._session("fetch repo cache batch") as session:
            rows = session.scalars(
                select(RepoCacheRecord).where(RepoCacheRecord.github_repo_id.in_(list(repo_ids)))
            )
            return {row.github_repo_id: self._to_entry(row) for row in rows}

    def exists(self, repo_id: int, valid_at: datetime) -> bool:
        with self._session("check cache validity") as session:
            count = session.scalar(
                select(func.count())
                .select_from(RepoCacheRecord)
                .where(RepoCacheRecord.github_repo_id == repo_id)
                .where(RepoCacheRecord.expires_at > self._store_time(valid_at))
            )
            return bool(count)

    def fetch_etag(self, repo_id: int) -> str | None:
        with self._session("fetch cache ETag") as session:
            return session.scalar(
                select(RepoCacheRecord.etag).where(RepoCacheRecord.github_repo_id == repo_id)
            )

    def upsert(self, entry: CacheEntry) -> CacheEntry:
        with self._session("set repo cache") as session:
            row = session.get(RepoCacheRecord, entry.repo_id)
            if row is None:
                row = RepoCacheRecord(github_repo_id=entry.repo_id)
                session.add(row)
            row.cached_data = entry.data
            row.etag = entry.etag
            row.fetched_at = self._store_time(entry.fetched_at)
            row.expires_at = self._store_time(entry.expires_at)
        return entry

    def touch(self, repo_id: int, fetched_at: datetime, expires_at: datetime) -> bool:
        with self._session("refresh cache timestamp") as session:
            result = session.execute(
                update(RepoCacheRecord)
                .where(RepoCacheRecord.github_repo_id == repo_id)
                .values(
                    fetched_at=self._store_time(fetched_at),
                    expires_at=self._store_time(expires_at),
                )
            )
            return result.rowcount > 0

    def delete_expired_before(self, cutoff: datetime) -> int:
        with self._session("clean up expired cache") as session:
            result = session.execute(
                delete(RepoCacheRecord).where(
                    RepoCacheRecord.expires_at < self._store_time(cutoff)
                )
            )
            return result.rowcount or 0
