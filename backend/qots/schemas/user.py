"""
User schemas
"""
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class ProviderIdentity(BaseModel):
    """Profile returned by an identity provider for the signed-in account"""

    provider: str
    provider_user_id: str
    display_name: Optional[str] = None
    email: Optional[str] = None
    avatar_url: Optional[str] = None
    username: Optional[str] = None


class SessionUser(BaseModel):
    """Identity payload stored in the session store and the user_data cookie"""

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(alias="userId")
    email: Optional[str] = None
    name: Optional[str] = None
    avatar: Optional[str] = None
    provider: str

    @classmethod
    def from_identity(cls, identity: ProviderIdentity) -> "SessionUser":
        return cls(
            user_id=identity.provider_user_id,
            email=identity.email,
            name=identity.display_name,
            avatar=identity.avatar_url,
            provider=identity.provider,
        )
