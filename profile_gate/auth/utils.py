import secrets
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from profile_gate.config import Settings

INTERNAL_PROFILE_FIELDS = ("_raw", "_json")


def new_session_id() -> str:
    return secrets.token_urlsafe(32)


def create_token(settings: Settings, session_id: str) -> str:
    expire = datetime.now(timezone.utc) + timedelta(minutes=settings.session_ttl_minutes)
    payload = {"sid": session_id, "exp": expire}
    return jwt.encode(payload, settings.session_secret, algorithm=settings.jwt_algorithm)


def decode_token(settings: Settings, token: str) -> str | None:
    try:
        payload = jwt.decode(token, settings.session_secret, algorithms=[settings.jwt_algorithm])
        return str(payload["sid"])
    except (JWTError, KeyError):
        return None


def sanitize_return_path(path: str | None) -> str | None:
    """Only relative paths like `/user?tab=1` are valid redirect targets."""
    p = (path or "").replace("\r", "").replace("\n", "").strip()
    if not p.startswith("/") or p.startswith("//") or p.startswith("/\\"):
        return None
    return p


def display_profile(profile: dict) -> dict:
    """Profile fields safe to show, minus the raw provider payloads."""
    return {k: v for k, v in profile.items() if k not in INTERNAL_PROFILE_FIELDS}
