from urllib.parse import urlparse

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEV_SESSION_SECRET = "dev-secret-change-me"


class Settings(BaseSettings):
    auth0_domain: str
    auth0_client_id: str
    auth0_client_secret: str
    auth0_callback_url: str = "http://localhost:3000/callback"

    host: str = "0.0.0.0"
    port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"

    # Session settings
    session_secret: str = DEV_SESSION_SECRET
    session_ttl_minutes: int = 60 * 24  # 24 hours
    jwt_algorithm: str = "HS256"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", frozen=True)

    @property
    def is_production(self) -> bool:
        return self.app_env.strip().lower() == "production"

    @property
    def cookie_secure(self) -> bool:
        return self.is_production

    @property
    def session_ttl_seconds(self) -> int:
        return self.session_ttl_minutes * 60

    @property
    def callback_path(self) -> str:
        return urlparse(self.auth0_callback_url).path or "/callback"

    @property
    def server_metadata_url(self) -> str:
        return f"https://{self.auth0_domain}/.well-known/openid-configuration"

    @model_validator(mode="after")
    def check_required(self) -> "Settings":
        for name in ("auth0_domain", "auth0_client_id", "auth0_client_secret"):
            if not getattr(self, name).strip():
                raise ValueError(f"{name.upper()} must not be empty")
        if self.session_ttl_minutes < 1:
            raise ValueError("SESSION_TTL_MINUTES must be at least 1")
        if self.is_production and self.session_secret == DEV_SESSION_SECRET:
            raise ValueError("SESSION_SECRET must be set when APP_ENV=production")
        return self
