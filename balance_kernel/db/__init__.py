"""Database layer - engine, base classes and column types."""

from balance_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from balance_kernel.db.engine import (
    build_engine,
    create_tables,
    get_engine,
    get_session,
    init_engine_from_url,
    session_scope,
)
from balance_kernel.db.types import MoneyString, UTCDateTime

__all__ = [
    "build_engine",
    "init_engine_from_url",
    "get_engine",
    "get_session",
    "session_scope",
    "create_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
    "MoneyString",
    "UTCDateTime",
]
