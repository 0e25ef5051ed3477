"""
Services package.
Business logic on top of the database layer.

- LedgerService: accounts, deposits/withdrawals, history
- auth_service: passwords, tokens, register/login/reset flows
- user_service / device_service: user and trusted-device management
- admin_service: dashboard statistics and listings
- seed_service: startup admin seeding
"""
from backend.app.services.ledger_service import LedgerService

__all__ = [
    "LedgerService",
    ]
