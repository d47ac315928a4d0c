"""
Application configuration using Pydantic settings
"""
from typing import List, Optional, Tuple
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings"""

    # Database - PostgreSQL (postgresql+asyncpg://...) or SQLite (sqlite+aiosqlite://...)
    DATABASE_URL: str = "sqlite+aiosqlite:///./qots.db"
    DATABASE_POOL_SIZE: int = 10
    DATABASE_MAX_OVERFLOW: int = 20

    # OAuth providers
    GOOGLE_CLIENT_ID: Optional[str] = None
    GOOGLE_CLIENT_SECRET: Optional[str] = None
    GITHUB_CLIENT_ID: Optional[str] = None
    GITHUB_CLIENT_SECRET: Optional[str] = None

    # Public site URL, used for the OAuth redirect URI and post-login redirects.
    # Must match the callback URL registered with each provider exactly.
    SITE_URL: Optional[str] = None

    # False: callback is GET /api/auth/{provider} (same endpoint as login)
    # True: callback is GET /api/auth/{provider}/callback
    OAUTH_SEPARATE_CALLBACK: bool = False
    OAUTH_STATE_TTL_SECONDS: int = 600
    OAUTH_DIAGNOSTICS_ENABLED: bool = False

    # Sessions
    SESSION_TTL_SECONDS: int = 604800  # 7 days

    # Outbound calls to identity providers
    HTTP_TIMEOUT_SECONDS: float = 10.0

    # Application
    APP_NAME: str = "Q-OTS Auth API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:8788"

    # Cookie settings
    COOKIE_SECURE: bool = True
    COOKIE_SAMESITE: str = "lax"  # "strict", "lax", or "none"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string"""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def site_url(self) -> Optional[str]:
        if not self.SITE_URL:
            return None
        return self.SITE_URL.rstrip("/")

    def oauth_redirect_uri(self, provider: str) -> Optional[str]:
        """Redirect URI sent to the provider; None when SITE_URL is not set"""
        if not self.site_url:
            return None
        path = f"/api/auth/{provider}"
        if self.OAUTH_SEPARATE_CALLBACK:
            path += "/callback"
        return f"{self.site_url}{path}"

    def provider_credentials(self, provider: str) -> Tuple[Optional[str], Optional[str]]:
        """Return (client_id, client_secret) for a provider name"""
        prefix = provider.upper()
        return (
            getattr(self, f"{prefix}_CLIENT_ID", None),
            getattr(self, f"{prefix}_CLIENT_SECRET", None),
        )

    def missing_oauth_settings(self, provider: str) -> List[str]:
        """Names of the environment variables a provider still needs"""
        client_id, client_secret = self.provider_credentials(provider)
        missing: List[str] = []
        prefix = provider.upper()
        if not client_id:
            missing.append(f"{prefix}_CLIENT_ID")
        if not client_secret:
            missing.append(f"{prefix}_CLIENT_SECRET")
        if not self.site_url:
            missing.append("SITE_URL")
        return missing


settings = Settings()
