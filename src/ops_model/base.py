from sqlalchemy import create_engine, event, Column, String, DateTime
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.sql import func
import os
import uuid
from pathlib import Path
from typing import Optional

Base = declarative_base()


def generate_uuid():
    """Generate a UUID string for primary keys."""
    return str(uuid.uuid4())


def uuid_pk():
    """Create a UUID primary key column."""
    return Column(String(36), primary_key=True, default=generate_uuid)


class TimestampMixin:
    """Mixin to add created_at and updated_at timestamps to models."""

    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime, nullable=False, server_default=func.now(), onupdate=func.now()
    )


def get_ops_database_path() -> str:
    """
    Default path to the local ops database file (data/notif_ops.db).
    """
    # project root = src/.. (repo root)
    project_root = Path(__file__).resolve().parents[2]
    return str(project_root / "data" / "notif_ops.db")


def _build_ops_database_url() -> str:
    """
    Build database URL for the ops database.

    Priority order:
    1. POSTGRES_URL (for a hosted PostgreSQL)
    2. OPS_DB_PATH (custom SQLite path)
    3. Default: data/notif_ops.db (SQLite fallback)
    """
    postgres_url = os.getenv("POSTGRES_URL")
    if postgres_url:
        return postgres_url

    env_path = os.getenv("OPS_DB_PATH")
    db_path = (
        os.path.abspath(env_path)
        if env_path
        else os.path.abspath(get_ops_database_path())
    )
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    return f"sqlite:///{db_path}"


def get_ops_engine(database_url: Optional[str] = None):
    """Create and configure database engine; ``database_url`` overrides the environment."""
    database_url = database_url or _build_ops_database_url()

    if database_url.startswith("postgresql"):
        engine = create_engine(
            database_url,
            echo=False,
            pool_pre_ping=True,
            pool_recycle=3600,  # Longer for cloud databases
            pool_size=10,
            max_overflow=20,
        )
    else:
        engine = create_engine(
            database_url,
            echo=False,
            connect_args={
                "check_same_thread": False,  # Allow multi-threading
                "timeout": 20,  # Connection timeout
            },
            pool_pre_ping=True,
            pool_recycle=300,
        )

        # WAL mode and pragmas for SQLite only
        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA synchronous=NORMAL")
            cursor.execute("PRAGMA temp_store=memory")
            cursor.close()

    return engine


def get_ops_session_factory(engine=None):
    """Create session factory for the ops database."""
    engine = engine or get_ops_engine()
    return sessionmaker(bind=engine)


def ensure_tables(engine=None):
    """Create any missing ops tables."""
    engine = engine or get_ops_engine()
    Base.metadata.create_all(engine)
    return engine
