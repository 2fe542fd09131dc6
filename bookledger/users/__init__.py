"""
Users Module for BookLedger
"""

from bookledger.users.service import UserService, role_value

__all__ = [
    "UserService",
    "role_value",
]
