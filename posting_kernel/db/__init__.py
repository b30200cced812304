"""Database layer - engine, base classes, immutability listeners."""

from posting_kernel.db.base import SYSTEM_ACTOR_ID, UUID, Base, TrackedBase, UUIDString
from posting_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
    get_session_factory,
    session_scope,
)

__all__ = [
    "SYSTEM_ACTOR_ID",
    "get_engine",
    "get_session",
    "get_session_factory",
    "session_scope",
    "create_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
]
