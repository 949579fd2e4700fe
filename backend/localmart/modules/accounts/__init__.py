"""
Accounts Module - Registration, login and profile.
"""

from localmart.modules.accounts.service import AccountService

__all__ = ["AccountService"]
