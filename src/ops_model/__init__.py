# Ops database package (post cache persistence and pass bookkeeping)
from .base import (
    Base,
    uuid_pk,
    generate_uuid,
    TimestampMixin,
    ensure_tables,
    get_ops_engine,
    get_ops_session_factory,
    get_ops_database_path,
)
from .models import CachedPost, Pass

__all__ = [
    # Base and utils
    "Base",
    "uuid_pk",
    "generate_uuid",
    "TimestampMixin",
    "ensure_tables",
    "get_ops_engine",
    "get_ops_session_factory",
    "get_ops_database_path",
    # Models
    "CachedPost",
    "Pass",
]
