"""Database connection and session management with read replica support."""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from cyclecoach.config.settings import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()


@dataclass
class ReplicaStatus:
    """Health status tracking for a read replica."""
    url: str
    engine: Optional[AsyncEngine] = None
    session_maker: Optional[async_sessionmaker] = None
    is_healthy: bool = True
    last_check: Optional[datetime] = None
    failure_count: int = 0
    last_error: Optional[str] = None
    total_queries: int = 0
    failed_queries: int = 0


@dataclass
class ReplicaPool:
    """Round-robin pool of read replicas with health tracking."""
    replicas: list[ReplicaStatus] = field(default_factory=list)
    current_index: int = 0

    def get_healthy_replica(self) -> Optional[ReplicaStatus]:
        healthy_replicas = [r for r in self.replicas if r.is_healthy and r.engine is not None]

        if not healthy_replicas:
            return None

        replica = healthy_replicas[self.current_index % len(healthy_replicas)]
        self.current_index += 1
        return replica

    def mark_failure(self, replica: ReplicaStatus, error: str):
        """Mark a replica as failed."""
        replica.failure_count += 1
        replica.last_error = error
        replica.failed_queries += 1

        if replica.failure_count >= settings.read_replica_max_failures:
            replica.is_healthy = False
            logger.warning(
                f"Replica {replica.url} marked as unhealthy after {replica.failure_count} failures. Error: {error}"
            )

    def mark_success(self, replica: ReplicaStatus):
        """Mark a replica as successful."""
        replica.failure_count = max(0, replica.failure_count - 1)
        replica.total_queries += 1

        if not replica.is_healthy and replica.failure_count == 0:
            replica.is_healthy = True
            logger.info(f"Replica {replica.url} marked as healthy again")


# Global replica pool instance
replica_pool: Optional[ReplicaPool] = None


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def create_primary_engine(url: str | None = None) -> AsyncEngine:
    """Create the primary database engine for writes."""
    url = url or settings.database_url
    if _is_sqlite(url):
        return create_async_engine(url, echo=settings.debug, future=True)

    return create_async_engine(
        url,
        echo=settings.debug,
        future=True,
        pool_size=20,
        max_overflow=20,
        pool_timeout=30,
        pool_recycle=300,
        pool_pre_ping=True,
    )


def create_replica_engine(url: str) -> AsyncEngine:
    """Create a read replica engine."""
    return create_async_engine(
        url,
        echo=False,
        future=True,
        pool_size=settings.read_replica_pool_size,
        max_overflow=settings.read_replica_max_overflow,
        pool_pre_ping=True,
    )


def initialize_replica_pool() -> Optional[ReplicaPool]:
    """Initialize read replica pool from settings."""
    if not settings.read_replica_enabled or not settings.read_replica_urls:
        return None

    replica_urls = [url.strip() for url in settings.read_replica_urls.split(",") if url.strip()]

    if not replica_urls:
        logger.warning("read_replica_enabled is True but no replica URLs configured")
        return None

    replicas = []
    for url in replica_urls:
        engine = create_replica_engine(url)
        replicas.append(
            ReplicaStatus(
                url=url,
                engine=engine,
                session_maker=async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False),
                last_check=datetime.utcnow(),
            )
        )
        logger.info(f"Initialized read replica: {url}")

    return ReplicaPool(replicas=replicas)


# Create primary engine
engine = create_primary_engine()

# Primary session maker
async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


def get_read_session_maker() -> async_sessionmaker:
    """
    Session maker for read paths that tolerate replica lag.

    Falls back to the primary when no healthy replica is available.
    """
    if replica_pool:
        replica = replica_pool.get_healthy_replica()
        if replica and replica.session_maker:
            return replica.session_maker

    return async_session_maker


async def get_db() -> AsyncSession:
    """Dependency that provides a primary database session, committed on success."""
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_read_db() -> AsyncSession:
    """
    Dependency that provides a read-only database session.

    Prefers a healthy replica and records its success or failure.
    """
    replica = replica_pool.get_healthy_replica() if replica_pool else None
    if replica is None or replica.session_maker is None:
        if replica_pool and not settings.replica_fallback_to_primary:
            raise RuntimeError("No healthy replica and fallback to primary is disabled")
        async with async_session_maker() as session:
            yield session
        return

    try:
        async with replica.session_maker() as session:
            yield session
    except Exception as e:
        logger.warning(f"Replica session failed: {e}")
        replica_pool.mark_failure(replica, str(e))
        raise
    replica_pool.mark_success(replica)


async def init_db():
    """Initialize database tables and replica pool."""
    global replica_pool

    replica_pool = initialize_replica_pool()
    if replica_pool:
        logger.info(f"Read replica pool initialized with {len(replica_pool.replicas)} replicas")

    # Enable WAL mode for SQLite to support concurrent access
    if _is_sqlite(settings.database_url) and ":memory:" not in settings.database_url:
        async with engine.connect() as conn:
            await conn.execute(text("PRAGMA journal_mode=WAL"))
            await conn.execute(text("PRAGMA busy_timeout=30000"))
            await conn.commit()

    # Register all models on the metadata before create_all
    import cyclecoach.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_replica_health_status() -> dict:
    """Get the health status of all read replicas."""
    if not replica_pool:
        return {
            "enabled": False,
            "replicas": [],
        }

    return {
        "enabled": True,
        "replicas": [
            {
                "url": r.url,
                "is_healthy": r.is_healthy,
                "failure_count": r.failure_count,
                "last_error": r.last_error,
                "total_queries": r.total_queries,
                "failed_queries": r.failed_queries,
            }
            for r in replica_pool.replicas
        ],
        "healthy_count": sum(1 for r in replica_pool.replicas if r.is_healthy),
        "total_count": len(replica_pool.replicas),
    }


async def close_all_engines():
    """Close all database engines (primary and replicas)."""
    await engine.dispose()

    if replica_pool:
        for replica in replica_pool.replicas:
            if replica.engine:
                await replica.engine.dispose()
