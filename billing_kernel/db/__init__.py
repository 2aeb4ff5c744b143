"""
billing_kernel.db -- declarative base, engine/session management, schema
probing and store error translation.
"""

from billing_kernel.db.base import Base, RecordBase, new_id
from billing_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_engine,
    get_session,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
    session_scope,
)

__all__ = [
    "Base",
    "RecordBase",
    "create_tables",
    "drop_tables",
    "get_engine",
    "get_session",
    "get_session_factory",
    "init_engine_from_url",
    "new_id",
    "reset_engine",
    "session_scope",
]
