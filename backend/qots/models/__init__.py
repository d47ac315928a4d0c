"""
Database models
"""
from qots.models.user import User
from qots.models.session import Session

__all__ = [
    "User",
    "Session",
]
