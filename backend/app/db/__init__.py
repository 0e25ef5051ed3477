"""
Database module exports.
"""
from backend.app.db.base import (
    SQLModel,
    # Enums
    UserRole,
    TransactionType,
    TransactionStatus,
    # Models
    User,
    Device,
    Account,
    Transaction,
    )
from backend.app.db.session import get_sync_engine, get_async_engine, get_session_generator

__all__ = [
    "SQLModel",
    "get_sync_engine",  # For sync scripts (migrations, checks)
    "get_async_engine",  # For async FastAPI app
    "get_session_generator",
    # Enums
    "UserRole",
    "TransactionType",
    "TransactionStatus",
    # Models
    "User",
    "Device",
    "Account",
    "Transaction",
    ]
