"""
FastAPI dependencies for outbound HTTP and session authentication
"""
from typing import AsyncIterator, Dict, Optional
import httpx
from fastapi import Depends, HTTPException, status, Request
from sqlalchemy.ext.asyncio import AsyncSession
from qots.core.config import settings
from qots.core.cookies import session_cookie
from qots.core.database import get_db
from qots.core.sessions import get_session


async def get_http_client() -> AsyncIterator[httpx.AsyncClient]:
    """Per-request client for identity provider calls"""
    async with httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_SECONDS) as client:
        yield client


def get_token_from_request(request: Request) -> Optional[str]:
    """
    Extract the session token - checks the session cookie first, then the
    Authorization header. Returns None if no token found.
    """
    token = session_cookie().read(request)

    # Fallback to Authorization header (for API clients)
    if not token:
        auth_header = request.headers.get("authorization")
        if auth_header and auth_header.lower().startswith("bearer "):
            token = auth_header[7:].strip() or None

    return token


async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> Optional[Dict]:
    """
    Get the signed-in user's session payload.
    Returns None if not authenticated (for optional auth scenarios).
    """
    token = get_token_from_request(request)
    if not token:
        return None
    return await get_session(db, token)


async def get_current_user_required(
    current_user: Optional[Dict] = Depends(get_current_user),
) -> Dict:
    """
    Require authentication - raises 401 if user is not authenticated.
    """
    if current_user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return current_user
