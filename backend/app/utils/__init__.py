"""
Utility functions for SavingsVault.

This package contains:
- datetime_utils: timezone-aware timestamps
- decimal_utils: money precision handling
"""
