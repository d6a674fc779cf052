"""Database infrastructure module."""

from orchestrator.infrastructure.database.session import (
    create_db_engine,
    create_session_factory,
    init_models,
)

__all__ = [
    "create_db_engine",
    "create_session_factory",
    "init_models",
]
