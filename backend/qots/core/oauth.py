"""
OAuth 2.0 authorization-code helpers for the configured identity providers
"""
from typing import Dict, List, Optional
from urllib.parse import urlencode
import httpx
import logging
from qots.core.config import settings
from qots.core.providers import OAuthProvider
from qots.schemas.user import ProviderIdentity

logger = logging.getLogger(__name__)


def get_oauth_authorization_url(provider: OAuthProvider, state: str) -> str:
    """Generate the provider consent-screen URL for a login attempt"""
    client_id, _ = settings.provider_credentials(provider.name)
    redirect_uri = settings.oauth_redirect_uri(provider.name)
    if not client_id or not redirect_uri:
        raise ValueError(
            f"OAuth configuration is missing for {provider.name}. "
            f"Please set {provider.name.upper()}_CLIENT_ID and SITE_URL environment variables."
        )

    params = {
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "scope": provider.scope,
        "state": state,
        **provider.authorize_params,
    }
    return f"{provider.authorize_url}?{urlencode(params)}"


async def exchange_code_for_token(
    client: httpx.AsyncClient, provider: OAuthProvider, code: str
) -> Optional[Dict]:
    """
    Exchange authorization code for an access token.

    Returns the decoded token response (which may carry a provider ``error``
    field), or None when the endpoint could not be reached or answered with a
    non-success status. Codes are single-use, so the call is never retried.
    """
    client_id, client_secret = settings.provider_credentials(provider.name)
    if not client_id or not client_secret:
        raise ValueError(
            f"OAuth configuration is missing. Please set {provider.name.upper()}_CLIENT_ID "
            f"and {provider.name.upper()}_CLIENT_SECRET environment variables."
        )

    data = {
        "client_id": client_id,
        "client_secret": client_secret,
        "code": code,
        "grant_type": "authorization_code",
        "redirect_uri": settings.oauth_redirect_uri(provider.name),
    }
    headers = {"Accept": "application/json"}

    try:
        if provider.token_request_format == "json":
            response = await client.post(provider.token_url, json=data, headers=headers)
        else:
            response = await client.post(provider.token_url, data=data, headers=headers)
    except httpx.HTTPError as e:
        logger.error(f"Token exchange request to {provider.name} failed: {e}")
        return None

    if response.status_code != 200:
        logger.error(f"Token exchange failed: {response.status_code} - {response.text}")
        return None
    try:
        return response.json()
    except ValueError:
        logger.error(f"Token exchange returned a non-JSON body from {provider.name}")
        return None


async def _get_json(client: httpx.AsyncClient, url: str, headers: Dict[str, str]):
    try:
        response = await client.get(url, headers=headers)
    except httpx.HTTPError as e:
        logger.error(f"Request to {url} failed: {e}")
        return None
    if response.status_code != 200:
        logger.error(f"Request to {url} failed: {response.status_code} - {response.text}")
        return None
    try:
        return response.json()
    except ValueError:
        logger.error(f"Request to {url} returned a non-JSON body")
        return None


def _bearer_headers(provider: OAuthProvider, access_token: str) -> Dict[str, str]:
    return {**provider.api_headers, "Authorization": f"Bearer {access_token}"}


async def get_user_info(
    client: httpx.AsyncClient, provider: OAuthProvider, access_token: str
) -> Optional[Dict]:
    """Get user profile from the provider's user-info endpoint"""
    profile = await _get_json(client, provider.userinfo_url, _bearer_headers(provider, access_token))
    if not isinstance(profile, dict) or profile.get("id") is None:
        return None
    return profile


def select_primary_email(emails: List[Dict]) -> Optional[str]:
    """Pick the entry flagged primary, falling back to the first entry"""
    if not emails:
        return None
    chosen = next((entry for entry in emails if entry.get("primary")), emails[0])
    return chosen.get("email")


async def get_primary_email(
    client: httpx.AsyncClient, provider: OAuthProvider, access_token: str
) -> Optional[str]:
    """Look up the account's email list when the profile hides the address"""
    if not provider.emails_url:
        return None
    emails = await _get_json(client, provider.emails_url, _bearer_headers(provider, access_token))
    if not isinstance(emails, list):
        return None
    return select_primary_email(emails)


async def fetch_identity(
    client: httpx.AsyncClient, provider: OAuthProvider, access_token: str
) -> Optional[ProviderIdentity]:
    """
    Resolve the signed-in account into a ProviderIdentity.

    Returns None when the profile endpoint fails. A failed email lookup is not
    fatal: the address falls back to ``<login>@github.user``.
    """
    profile = await get_user_info(client, provider, access_token)
    if profile is None:
        return None

    identity = provider.to_identity(profile)
    if not identity.email and provider.emails_url:
        identity.email = await get_primary_email(client, provider, access_token)
        if not identity.email and identity.username:
            identity.email = f"{identity.username}@{provider.name}.user"
            logger.info(f"No email exposed by {provider.name} for {identity.username}, using placeholder")
    return identity
