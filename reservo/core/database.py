import structlog
from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base

from reservo.core.config import settings
from reservo.core.exceptions import BookingError

logger = structlog.get_logger(__name__)


# Execution option marking a session transaction as a writer (see begin_exclusive)
BEGIN_IMMEDIATE = "reservo_begin_immediate"


def _enable_sqlite_immediate_transactions(engine: AsyncEngine) -> None:
    """Emit BEGIN ourselves so writer transactions can ask for BEGIN IMMEDIATE.

    The driver's implicit BEGIN is disabled. Reads start with a deferred
    BEGIN and take no write lock; transactions opened through
    ``begin_exclusive`` take the database write lock up front, so a booking
    commit's re-read and insert run as one exclusive unit.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        if conn.get_execution_options().get(BEGIN_IMMEDIATE):
            conn.exec_driver_sql("BEGIN IMMEDIATE")
        else:
            conn.exec_driver_sql("BEGIN")


def create_engine_for_url(database_url: str) -> AsyncEngine:
    """Build an async engine with the per-dialect settings the booking engine relies on."""
    engine_kwargs = {
        "echo": False,  # Disabled to prevent SQLAlchemy engine logs
        "pool_pre_ping": settings.DATABASE_POOL_PRE_PING,
    }

    if database_url.startswith("sqlite"):
        engine_kwargs["connect_args"] = {
            "timeout": settings.SQLITE_BUSY_TIMEOUT_SECONDS
        }
    else:
        engine_kwargs["pool_recycle"] = 300
        if (
            database_url.startswith("postgresql+asyncpg")
            and settings.DATABASE_STATEMENT_TIMEOUT_MS
        ):
            engine_kwargs["connect_args"] = {
                "server_settings": {
                    "statement_timeout": str(settings.DATABASE_STATEMENT_TIMEOUT_MS)
                }
            }

    engine = create_async_engine(database_url, **engine_kwargs)
    if engine.dialect.name == "sqlite":
        _enable_sqlite_immediate_transactions(engine)
    return engine


engine = create_engine_for_url(settings.DATABASE_URL)

AsyncSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)

Base = declarative_base()


async def create_schema(target_engine: AsyncEngine) -> None:
    """Create all tables (and the btree_gist extension on PostgreSQL)."""
    # Import models so they are registered on Base.metadata
    from reservo import models  # noqa: F401

    async with target_engine.begin() as conn:
        if target_engine.dialect.name == "postgresql":
            await conn.execute(text("CREATE EXTENSION IF NOT EXISTS btree_gist"))
        await conn.run_sync(Base.metadata.create_all)


async def begin_exclusive(session: AsyncSession) -> None:
    """Open the session's transaction as a writer before reading what it will change.

    On SQLite this is BEGIN IMMEDIATE; other dialects begin normally and rely
    on row locks and constraints. A read-only transaction already open on the
    session is committed first, so call this before making any changes.
    """
    if session.in_transaction():
        connection = await session.connection()
        if connection.sync_connection.get_execution_options().get(BEGIN_IMMEDIATE):
            return
        await session.commit()
    await session.connection(execution_options={BEGIN_IMMEDIATE: True})


async def init_db():
    """Initialize database connection and create the schema."""
    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))

        await create_schema(engine)
        logger.info(
            "Database connection initialized successfully",
            dialect=engine.dialect.name,
        )
    except Exception as e:
        logger.error("Failed to initialize database", exc_info=e)
        raise


async def get_db() -> AsyncSession:
    """Dependency to get database session."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except BookingError:
            await session.rollback()
            raise
        except Exception as e:
            await session.rollback()
            logger.error("Database session error", exc_info=e)
            raise
        finally:
            await session.close()
