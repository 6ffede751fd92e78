"""
Server-side sessions keyed by a signed, cookie-borne session id.

The cookie only carries a JWT with the session id and its expiry; the data
itself lives in the store. A session is written only once something is put
into it, and a session emptied by a handler (logout) is deleted together
with its cookie.
"""

import json
import logging
import time
from typing import Callable

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from profile_gate.auth.utils import create_token, decode_token, new_session_id
from profile_gate.config import Settings

logger = logging.getLogger(__name__)

SESSION_COOKIE_NAME = "session_id"
_ROTATE_KEY = "profile_gate.rotate_session"


class InMemorySessionStore:
    """Session records held in process memory. Lost on restart."""

    def __init__(self, ttl_seconds: int, clock: Callable[[], float] = time.time):
        self._ttl = ttl_seconds
        self._clock = clock
        self._records: dict[str, tuple[float, str]] = {}

    def __len__(self) -> int:
        return len(self._records)

    def get(self, session_id: str) -> dict | None:
        record = self._records.get(session_id)
        if record is None:
            return None
        expires_at, raw = record
        if expires_at <= self._clock():
            del self._records[session_id]
            return None
        return json.loads(raw)

    def save(self, session_id: str, data: dict) -> None:
        # Expiry is fixed when the record is created, matching the token's `exp`.
        now = self._clock()
        record = self._records.get(session_id)
        expires_at = record[0] if record and record[0] > now else now + self._ttl
        # Stored as JSON so what a handler reads back is exactly what was saved.
        self._records[session_id] = (expires_at, json.dumps(data))

    def delete(self, session_id: str) -> None:
        self._records.pop(session_id, None)

    def purge_expired(self) -> int:
        now = self._clock()
        expired = [sid for sid, (expires_at, _) in self._records.items() if expires_at <= now]
        for sid in expired:
            del self._records[sid]
        if expired:
            logger.info(f"Purged {len(expired)} expired sessions")
        return len(expired)


def rotate_session(request: Request) -> None:
    """Issue a fresh session id for this session when the response is sent."""
    request.scope[_ROTATE_KEY] = True


def session_cookie_kwargs(settings: Settings, value: str) -> dict:
    return {
        "key": SESSION_COOKIE_NAME,
        "value": value,
        "max_age": settings.session_ttl_seconds,
        "httponly": True,
        "secure": settings.cookie_secure,
        "samesite": "lax",
        "path": "/",
    }


class SessionMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, settings: Settings, store: InMemorySessionStore):
        super().__init__(app)
        self.settings = settings
        self.store = store

    async def dispatch(self, request: Request, call_next) -> Response:
        token = request.cookies.get(SESSION_COOKIE_NAME)
        session_id = decode_token(self.settings, token) if token else None
        data = self.store.get(session_id) if session_id else None
        if data is None:
            if token:
                logger.debug("Ignoring invalid or expired session token")
            session_id = None
            data = {}

        request.scope["session"] = data
        response = await call_next(request)

        data = request.scope["session"]
        rotate = request.scope.pop(_ROTATE_KEY, False)

        if not data:
            if session_id:
                self.store.delete(session_id)
            if token:
                response.delete_cookie(
                    SESSION_COOKIE_NAME,
                    path="/",
                    secure=self.settings.cookie_secure,
                    httponly=True,
                    samesite="lax",
                )
            return response

        if rotate and session_id:
            self.store.delete(session_id)
            session_id = None

        is_new = session_id is None
        if is_new:
            session_id = new_session_id()
            self.store.purge_expired()
        self.store.save(session_id, data)
        if is_new:
            response.set_cookie(**session_cookie_kwargs(self.settings, create_token(self.settings, session_id)))
        return response
