"""
Database base module.
SQLModel base classes and metadata.
Import all models here so Alembic can detect them.
"""
from sqlmodel import SQLModel

# Import all models so Alembic can detect them
from backend.app.db.models import (
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

__all__ = [
    "SQLModel",
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
