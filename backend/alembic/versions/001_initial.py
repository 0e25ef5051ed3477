"""initial schema

Revision ID: 001_initial
Revises:
Create Date: 2026-10-18

users, devices, accounts, transactions
"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = '001_initial'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create all tables."""
    conn = op.get_bind()

    print("Starting migration 001_initial...")

    # Users table
    print("Creating table: users...")
    conn.execute(sa.text("""CREATE TABLE users
                            (
                                id              INTEGER PRIMARY KEY,
                                email           VARCHAR    NOT NULL,
                                hashed_password VARCHAR    NOT NULL,
                                first_name      VARCHAR    NOT NULL,
                                last_name       VARCHAR    NOT NULL,
                                role            VARCHAR(5) NOT NULL,
                                is_active       BOOLEAN    NOT NULL,
                                created_at      DATETIME   NOT NULL,
                                updated_at      DATETIME   NOT NULL
                            )"""))
    conn.execute(sa.text("CREATE UNIQUE INDEX ix_users_email ON users (email)"))

    # Devices table
    print("Creating table: devices...")
    conn.execute(sa.text("""CREATE TABLE devices
                            (
                                id          INTEGER PRIMARY KEY,
                                user_id     INTEGER  NOT NULL,
                                device_id   VARCHAR  NOT NULL,
                                is_verified BOOLEAN  NOT NULL,
                                last_login  DATETIME,
                                created_at  DATETIME NOT NULL,
                                updated_at  DATETIME NOT NULL,
                                CONSTRAINT uq_devices_user_device UNIQUE (user_id, device_id),
                                FOREIGN KEY (user_id) REFERENCES users (id) ON DELETE CASCADE
                            )"""))
    conn.execute(sa.text("CREATE INDEX ix_devices_user_id ON devices (user_id)"))
    conn.execute(sa.text("CREATE INDEX ix_devices_device_id ON devices (device_id)"))

    # Accounts table
    print("Creating table: accounts...")
    conn.execute(sa.text("""CREATE TABLE accounts
                            (
                                id         INTEGER PRIMARY KEY,
                                user_id    INTEGER        NOT NULL UNIQUE,
                                balance    NUMERIC(12, 2) NOT NULL,
                                currency   VARCHAR(3)     NOT NULL,
                                version    INTEGER        NOT NULL,
                                created_at DATETIME       NOT NULL,
                                updated_at DATETIME       NOT NULL,
                                CONSTRAINT ck_accounts_balance_non_negative CHECK (balance >= 0),
                                FOREIGN KEY (user_id) REFERENCES users (id) ON DELETE CASCADE
                            )"""))

    # Transactions table
    print("Creating table: transactions...")
    conn.execute(sa.text("""CREATE TABLE transactions
                            (
                                id             INTEGER PRIMARY KEY,
                                account_id     INTEGER        NOT NULL,
                                type           VARCHAR(10)    NOT NULL,
                                amount         NUMERIC(12, 2) NOT NULL,
                                balance_before NUMERIC(12, 2) NOT NULL,
                                balance_after  NUMERIC(12, 2) NOT NULL,
                                description    VARCHAR        NOT NULL,
                                status         VARCHAR(9)     NOT NULL,
                                created_at     DATETIME       NOT NULL,
                                CONSTRAINT ck_transactions_amount_positive CHECK (amount > 0),
                                CONSTRAINT ck_transactions_balance_after_non_negative CHECK (balance_after >= 0),
                                FOREIGN KEY (account_id) REFERENCES accounts (id) ON DELETE CASCADE
                            )"""))
    conn.execute(sa.text("CREATE INDEX idx_transactions_account_created ON transactions (account_id, created_at, id)"))
    conn.execute(sa.text("CREATE INDEX ix_transactions_account_id ON transactions (account_id)"))

    print("Migration 001_initial completed: 4 tables")


def downgrade() -> None:
    """Drop all tables."""
    conn = op.get_bind()
    for table in ['transactions', 'accounts', 'devices', 'users']:
        conn.execute(sa.text(f"DROP TABLE IF EXISTS {table}"))
