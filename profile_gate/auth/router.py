import logging

from fastapi import APIRouter, Request
from fastapi.responses import RedirectResponse

from profile_gate.auth.utils import sanitize_return_path
from profile_gate.session import rotate_session

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])

USER_SESSION_KEY = "user"
RETURN_TO_SESSION_KEY = "return_to"
LOGIN_PATH = "/login"


class LoginRequired(Exception):
    """Raised by `require_user` when the session carries no identity."""


async def login_required_handler(request: Request, exc: LoginRequired) -> RedirectResponse:
    return RedirectResponse(LOGIN_PATH, status_code=302)


def get_current_user(request: Request) -> dict | None:
    return request.session.get(USER_SESSION_KEY)


def is_authenticated(request: Request) -> bool:
    return "session" in request.scope and get_current_user(request) is not None


def require_user(request: Request) -> dict:
    user = get_current_user(request)
    if user:
        return user

    return_to = request.url.path
    if request.url.query:
        return_to = f"{return_to}?{request.url.query}"
    request.session[RETURN_TO_SESSION_KEY] = return_to
    logger.info(f"Anonymous request for {return_to}, redirecting to login")
    raise LoginRequired()


@router.get(LOGIN_PATH)
async def login(request: Request):
    provider = request.app.state.identity_provider
    return await provider.begin_login(request)


async def callback(request: Request):
    provider = request.app.state.identity_provider
    result = await provider.complete_login(request)
    if not result.ok:
        logger.warning(f"Login failed: {result.error}")
        return RedirectResponse(LOGIN_PATH, status_code=302)

    return_to = sanitize_return_path(request.session.pop(RETURN_TO_SESSION_KEY, None))
    rotate_session(request)
    request.session[USER_SESSION_KEY] = result.profile
    logger.info(f"User {result.profile.get('id')} logged in")
    return RedirectResponse(return_to or "/", status_code=302)


@router.get("/logout")
async def logout(request: Request):
    user = get_current_user(request)
    request.session.clear()
    if user:
        logger.info(f"User {user.get('id')} logged out")
    provider = request.app.state.identity_provider
    return RedirectResponse(provider.logout_url(str(request.base_url)), status_code=302)
