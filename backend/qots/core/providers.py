"""
OAuth provider descriptors (endpoints, scopes, profile mapping)
"""
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional
from qots.schemas.user import ProviderIdentity


def _google_identity(profile: Dict) -> ProviderIdentity:
    return ProviderIdentity(
        provider="google",
        provider_user_id=str(profile["id"]),
        display_name=profile.get("name"),
        email=profile.get("email"),
        avatar_url=profile.get("picture"),
    )


def _github_identity(profile: Dict) -> ProviderIdentity:
    login = profile.get("login")
    return ProviderIdentity(
        provider="github",
        provider_user_id=str(profile["id"]),
        display_name=profile.get("name") or login,
        email=profile.get("email"),
        avatar_url=profile.get("avatar_url"),
        username=login,
    )


@dataclass(frozen=True)
class OAuthProvider:
    """Static description of an OAuth 2.0 identity provider"""

    name: str
    authorize_url: str
    token_url: str
    userinfo_url: str
    scope: str
    to_identity: Callable[[Dict], ProviderIdentity]
    emails_url: Optional[str] = None
    # "form" posts application/x-www-form-urlencoded, "json" posts a JSON body
    token_request_format: str = "form"
    authorize_params: Dict[str, str] = field(default_factory=dict)
    api_headers: Dict[str, str] = field(default_factory=dict)


PROVIDERS: Dict[str, OAuthProvider] = {
    "google": OAuthProvider(
        name="google",
        authorize_url="https://accounts.google.com/o/oauth2/v2/auth",
        token_url="https://oauth2.googleapis.com/token",
        userinfo_url="https://www.googleapis.com/oauth2/v2/userinfo",
        scope="openid email profile",
        to_identity=_google_identity,
        authorize_params={"response_type": "code"},
    ),
    "github": OAuthProvider(
        name="github",
        authorize_url="https://github.com/login/oauth/authorize",
        token_url="https://github.com/login/oauth/access_token",
        userinfo_url="https://api.github.com/user",
        scope="read:user user:email",
        to_identity=_github_identity,
        emails_url="https://api.github.com/user/emails",
        token_request_format="json",
        # GitHub rejects API requests without a User-Agent
        api_headers={
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": "Q-OTS-Website",
        },
    ),
}


def get_provider(name: str) -> Optional[OAuthProvider]:
    return PROVIDERS.get(name.lower())
