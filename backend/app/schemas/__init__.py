"""
Pydantic schemas for SavingsVault.

**Organization by Domain**:
- common.py: CamelModel base, Money type, generic message body
- auth.py: registration, login, token claims, user/device views
- account.py: balance, deposit/withdraw, transaction history
- admin.py: admin user/device management and dashboard stats

All schemas serialize with camelCase keys (see CamelModel).
"""
