"""
Pydantic schemas for request/response validation
"""
from qots.schemas.user import ProviderIdentity, SessionUser

__all__ = [
    "ProviderIdentity",
    "SessionUser",
]
