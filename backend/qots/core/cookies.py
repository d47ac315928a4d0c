"""
Cookie definitions for the login flow and session
"""
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import quote
import json
from fastapi import Request, Response
from qots.core.config import settings

STATE_COOKIE_NAME = "oauth_state"
SESSION_COOKIE_NAME = "session"
USER_DATA_COOKIE_NAME = "user_data"


@dataclass(frozen=True)
class CookieSpec:
    """
    Typed cookie attributes.

    Secure and SameSite are taken from settings at write time.
    """

    name: str
    max_age: int
    httponly: bool = True
    path: str = "/"

    def set(self, response: Response, value: str) -> None:
        response.set_cookie(
            key=self.name,
            value=value,
            max_age=self.max_age,
            httponly=self.httponly,
            secure=settings.COOKIE_SECURE,
            samesite=settings.COOKIE_SAMESITE,
            path=self.path,
        )

    def clear(self, response: Response) -> None:
        """Overwrite with an empty value that expires immediately"""
        response.delete_cookie(
            key=self.name,
            path=self.path,
            httponly=self.httponly,
            secure=settings.COOKIE_SECURE,
            samesite=settings.COOKIE_SAMESITE,
        )

    def read(self, request: Request) -> Optional[str]:
        return request.cookies.get(self.name) or None


def state_cookie() -> CookieSpec:
    return CookieSpec(name=STATE_COOKIE_NAME, max_age=settings.OAUTH_STATE_TTL_SECONDS)


def session_cookie() -> CookieSpec:
    return CookieSpec(name=SESSION_COOKIE_NAME, max_age=settings.SESSION_TTL_SECONDS)


def user_data_cookie() -> CookieSpec:
    # Readable by page scripts so the signed-in UI renders without a round trip
    return CookieSpec(name=USER_DATA_COOKIE_NAME, max_age=settings.SESSION_TTL_SECONDS, httponly=False)


def encode_user_data(payload: Dict[str, Any]) -> str:
    """URL-encode the JSON payload so it survives as a bare cookie value"""
    return quote(json.dumps(payload, separators=(",", ":")), safe="")
