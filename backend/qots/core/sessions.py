"""
Session store backed by the sessions table
"""
from typing import Any, Dict, Optional
from datetime import datetime, timedelta, timezone
import secrets
import logging
from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession
from qots.core.config import settings
from qots.models.session import Session

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_session_token() -> str:
    return secrets.token_urlsafe(32)


async def create_session(
    db: AsyncSession,
    payload: Dict[str, Any],
    token: Optional[str] = None,
    now: Optional[datetime] = None,
) -> str:
    """Store payload under an opaque token that expires after SESSION_TTL_SECONDS"""
    now = now or _utcnow()
    token = token or new_session_token()
    db.add(
        Session(
            token=token,
            payload=payload,
            created_at=now,
            expires_at=now + timedelta(seconds=settings.SESSION_TTL_SECONDS),
        )
    )
    await db.commit()
    logger.debug(f"Stored session: {token[:8]}...")
    return token


async def get_session(
    db: AsyncSession,
    token: str,
    now: Optional[datetime] = None,
) -> Optional[Dict[str, Any]]:
    """Return the payload for a live session, or None if missing or expired"""
    if not token:
        return None
    now = now or _utcnow()
    result = await db.execute(
        select(Session).where(Session.token == token, Session.expires_at > now)
    )
    session = result.scalar_one_or_none()
    if session is None:
        expired = await db.execute(delete(Session).where(Session.token == token))
        if expired.rowcount:
            await db.commit()
            logger.debug(f"Dropped expired session: {token[:8]}...")
        return None
    return session.payload


async def delete_session(db: AsyncSession, token: str) -> bool:
    result = await db.execute(delete(Session).where(Session.token == token))
    await db.commit()
    return result.rowcount > 0


async def purge_expired_sessions(db: AsyncSession, now: Optional[datetime] = None) -> int:
    """Remove sessions past their expiry; returns the number removed"""
    now = now or _utcnow()
    result = await db.execute(delete(Session).where(Session.expires_at <= now))
    await db.commit()
    if result.rowcount:
        logger.debug(f"Cleaned up {result.rowcount} expired sessions")
    return result.rowcount
