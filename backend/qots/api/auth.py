"""
Authentication routes - OAuth login with Google and GitHub
"""
from typing import Optional, Dict
from datetime import datetime, timezone
from fastapi import APIRouter, Depends, HTTPException, status, Query, Request, Response
from fastapi.responses import RedirectResponse
from urllib.parse import urlencode
import secrets
import logging
import httpx
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from qots.core.config import settings
from qots.core.cookies import encode_user_data, session_cookie, state_cookie, user_data_cookie
from qots.core.database import get_db
from qots.core.dependencies import get_current_user_required, get_http_client, get_token_from_request
from qots.core.oauth import exchange_code_for_token, fetch_identity, get_oauth_authorization_url
from qots.core.providers import PROVIDERS, OAuthProvider, get_provider
from qots.core.sessions import create_session, delete_session, new_session_token, purge_expired_sessions
from qots.models.user import User
from qots.schemas.user import ProviderIdentity, SessionUser

router = APIRouter()
logger = logging.getLogger(__name__)

_UPSERT_DIALECTS = {
    "postgresql": postgresql_insert,
    "sqlite": sqlite_insert,
}


async def sync_user_from_identity(
    identity: ProviderIdentity,
    db: AsyncSession,
    now: Optional[datetime] = None,
) -> None:
    """
    Insert or refresh the user row for a provider account.

    Keyed by the provider user id: the first login inserts, later logins
    overwrite email, name and avatar and advance last_login. The provider
    column is written only on insert.
    """
    values = {
        "id": identity.provider_user_id,
        "email": identity.email,
        "name": identity.display_name,
        "avatar": identity.avatar_url,
        "provider": identity.provider,
        "last_login": now or datetime.now(timezone.utc),
    }

    dialect = db.get_bind().dialect.name
    insert = _UPSERT_DIALECTS.get(dialect)
    if insert is None:
        raise ValueError(f"Unsupported database dialect for user upsert: {dialect}")

    stmt = insert(User).values(**values)
    stmt = stmt.on_conflict_do_update(
        index_elements=[User.id],
        set_={
            "email": stmt.excluded.email,
            "name": stmt.excluded.name,
            "avatar": stmt.excluded.avatar,
            "last_login": stmt.excluded.last_login,
        },
    )
    await db.execute(stmt)
    await db.commit()
    logger.info(f"Synced {identity.provider} user {identity.provider_user_id}")


def _resolve_provider(name: str) -> OAuthProvider:
    provider = get_provider(name)
    if provider is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown OAuth provider: {name}",
        )
    return provider


def _require_configuration(provider: OAuthProvider) -> None:
    missing = settings.missing_oauth_settings(provider.name)
    if missing:
        error_message = (
            f"{provider.name.capitalize()} OAuth is not configured. "
            f"Please set {', '.join(missing)} environment variables."
        )
        logger.error(error_message)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=error_message,
        )


def _site_redirect(**params) -> RedirectResponse:
    return RedirectResponse(
        url=f"{settings.site_url}/?{urlencode(params)}",
        status_code=status.HTTP_302_FOUND,
    )


def _auth_error(reason: str) -> RedirectResponse:
    """Redirect to the site root with an error code; the state cookie is always spent"""
    response = _site_redirect(auth_error=reason)
    state_cookie().clear(response)
    return response


def _start_login(provider: OAuthProvider) -> RedirectResponse:
    state = secrets.token_urlsafe(32)
    auth_url = get_oauth_authorization_url(provider, state)

    response = RedirectResponse(url=auth_url, status_code=status.HTTP_302_FOUND)
    state_cookie().set(response, state)
    logger.info(f"Redirecting to {provider.name} consent screen (state {state[:8]}...)")
    return response


def _state_matches(returned: Optional[str], saved: Optional[str]) -> bool:
    if not returned or not saved:
        return False
    return secrets.compare_digest(returned.encode(), saved.encode())


async def _complete_login(
    provider: OAuthProvider,
    request: Request,
    code: Optional[str],
    state: Optional[str],
    error: Optional[str],
    db: AsyncSession,
    client: httpx.AsyncClient,
) -> RedirectResponse:
    if error:
        logger.warning(f"{provider.name} returned OAuth error: {error}")
        return _auth_error(error)

    if not code:
        return _auth_error("no_code")

    if not _state_matches(state, state_cookie().read(request)):
        logger.warning(f"Invalid OAuth state for {provider.name}: {(state or '')[:8]}...")
        return _auth_error("invalid_state")

    try:
        token_data = await exchange_code_for_token(client, provider, code)
        if token_data is None:
            return _auth_error("token_exchange_failed")
        if token_data.get("error"):
            logger.warning(f"{provider.name} token endpoint returned error: {token_data['error']}")
            return _auth_error(str(token_data["error"]))

        access_token = token_data.get("access_token")
        if not access_token:
            logger.error(f"No access token received from {provider.name}")
            return _auth_error("token_exchange_failed")

        identity = await fetch_identity(client, provider, access_token)
        if identity is None:
            return _auth_error("userinfo_failed")

        # The profile mirror is best effort; a failed write never blocks sign-in
        try:
            await sync_user_from_identity(identity, db)
        except Exception as e:
            await db.rollback()
            logger.error(f"Error syncing {provider.name} user: {e}", exc_info=True)

        payload = SessionUser.from_identity(identity).model_dump(by_alias=True)
        session_token = new_session_token()
        try:
            await create_session(db, payload, token=session_token)
        except Exception as e:
            await db.rollback()
            logger.error(f"Error storing session: {e}", exc_info=True)
        else:
            try:
                await purge_expired_sessions(db)
            except Exception as e:
                await db.rollback()
                logger.warning(f"Failed to purge expired sessions: {e}")

        response = _site_redirect(auth_success=1)
        session_cookie().set(response, session_token)
        user_data_cookie().set(response, encode_user_data(payload))
        state_cookie().clear(response)
        logger.info(f"{provider.name} login complete for {identity.provider_user_id}")
        return response
    except Exception as e:
        logger.error(f"Unexpected error in {provider.name} OAuth callback: {e}", exc_info=True)
        return _auth_error("server_error")


@router.get("/me", response_model=SessionUser)
async def get_current_user_info(
    current_user: Dict = Depends(get_current_user_required),
):
    """Get the signed-in user's identity from the session store"""
    return SessionUser.model_validate(current_user)


@router.post("/logout")
async def logout(
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    """Logout user by dropping the session and clearing the session cookies"""
    token = get_token_from_request(request)
    if token:
        await delete_session(db, token)
        logger.info(f"Logged out session {token[:8]}...")
    session_cookie().clear(response)
    user_data_cookie().clear(response)
    return {"message": "Logged out successfully"}


@router.get("/debug")
async def oauth_diagnostics():
    """Report OAuth configuration and the exact redirect URIs to register"""
    if not (settings.DEBUG or settings.OAUTH_DIAGNOSTICS_ENABLED):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not Found")

    providers = {}
    for name in PROVIDERS:
        client_id, client_secret = settings.provider_credentials(name)
        missing = settings.missing_oauth_settings(name)
        providers[name] = {
            "configured": not missing,
            "missing": missing,
            "client_id": client_id,
            "client_secret_set": bool(client_secret),
            "redirect_uri": settings.oauth_redirect_uri(name),
        }
    return {
        "site_url": settings.site_url,
        "separate_callback": settings.OAUTH_SEPARATE_CALLBACK,
        "providers": providers,
    }


@router.get("/{provider}")
async def oauth_login_or_callback(
    provider: str,
    request: Request,
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    client: httpx.AsyncClient = Depends(get_http_client),
):
    """
    Start the login flow, or finish it when the provider redirects back here.
    Without code/state/error the browser is sent to the provider consent screen.
    """
    oauth_provider = _resolve_provider(provider)
    _require_configuration(oauth_provider)

    if code is None and state is None and error is None:
        return _start_login(oauth_provider)
    return await _complete_login(oauth_provider, request, code, state, error, db, client)


@router.get("/{provider}/callback")
async def oauth_callback(
    provider: str,
    request: Request,
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    client: httpx.AsyncClient = Depends(get_http_client),
):
    """OAuth callback handler for providers registered with the /callback URI"""
    oauth_provider = _resolve_provider(provider)
    _require_configuration(oauth_provider)
    return await _complete_login(oauth_provider, request, code, state, error, db, client)
