import logging
from contextlib import asynccontextmanager
from pathlib import Path

import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates

from profile_gate.auth.provider import Auth0Provider
from profile_gate.auth.router import (
    LoginRequired,
    callback,
    is_authenticated,
    login_required_handler,
    require_user,
)
from profile_gate.auth.router import router as auth_router
from profile_gate.auth.utils import display_profile
from profile_gate.config import Settings
from profile_gate.session import InMemorySessionStore, SessionMiddleware

logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).parent
templates_dir = BASE_DIR / "templates"
public_dir = BASE_DIR / "public"


def auth_context(request: Request) -> dict:
    return {"is_authenticated": is_authenticated(request)}


templates = Jinja2Templates(directory=str(templates_dir), context_processors=[auth_context])


def create_app(settings: Settings | None = None, identity_provider=None) -> FastAPI:
    # Missing provider credentials fail here, before the server accepts requests.
    settings = settings or Settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            f"profile-gate started (env={settings.app_env}, domain={settings.auth0_domain}, "
            f"callback={settings.auth0_callback_url}, secure_cookies={settings.cookie_secure})"
        )
        yield
        logger.info(f"profile-gate stopped, dropping {len(app.state.session_store)} in-memory sessions")

    app = FastAPI(title="profile-gate", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.session_store = InMemorySessionStore(settings.session_ttl_seconds)
    app.state.identity_provider = identity_provider or Auth0Provider(settings)

    app.add_middleware(SessionMiddleware, settings=settings, store=app.state.session_store)
    app.add_exception_handler(LoginRequired, login_required_handler)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.get("/")
    async def index(request: Request):
        return templates.TemplateResponse(request, "index.html", {"title": "Home"})

    @app.get("/user")
    async def user_profile(request: Request, user: dict = Depends(require_user)):
        return templates.TemplateResponse(
            request,
            "user.html",
            {"title": "Profile", "user_profile": display_profile(user)},
        )

    app.include_router(auth_router)
    app.add_api_route(settings.callback_path, callback, methods=["GET"], tags=["auth"])

    # Mounted last: public files are served at their literal paths without shadowing routes.
    app.mount("/", StaticFiles(directory=str(public_dir)), name="public")
    return app


def run() -> None:
    settings = Settings()
    app = create_app(settings)
    logger.info(f"Listening to requests on http://localhost:{settings.port}")
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    run()
