"""Application configuration using pydantic-settings.

Registries are either in-memory (dry-run) or remote REST registries reached over HTTP.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ======================
    # Database
    # ======================
    database_url: str = Field(
        default="sqlite+aiosqlite:///./data/bundleswap.db",
        description="Database connection URL",
    )

    # ======================
    # API
    # ======================
    api_host: str = Field(default="0.0.0.0", description="API server host")
    api_port: int = Field(default=8000, description="API server port")

    # ======================
    # Environment
    # ======================
    environment: str = Field(default="development", description="Runtime environment")
    debug: bool = Field(default=True, description="Enable debug mode")
    dry_run: bool = Field(
        default=True, description="Use in-memory asset registries instead of remote ones"
    )

    # ======================
    # Escrow
    # ======================
    custody_identity: str = Field(
        default="bundleswap-escrow",
        description="Identity the escrow holds listed assets under",
    )
    operation_lock_timeout: float = Field(
        default=30.0, description="Seconds to wait for the in-flight operation to finish"
    )
    event_history_size: int = Field(
        default=1000, description="Number of recent domain events kept in memory"
    )

    # ======================
    # Asset registries
    # ======================
    dry_run_registries: str = Field(
        default="RegistryX,RegistryY",
        description="Comma-separated registry ids served in-memory in dry-run mode",
    )
    registry_endpoints: str = Field(
        default="",
        description="Comma-separated name=url pairs of remote registries",
    )
    registry_api_key: str = Field(default="", description="API key sent to remote registries")
    registry_timeout: float = Field(default=10.0, description="Remote registry timeout (seconds)")

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"

    @property
    def registry_names(self) -> list[str]:
        """Parse dry-run registry ids into a list."""
        return [name.strip() for name in self.dry_run_registries.split(",") if name.strip()]

    @property
    def registry_urls(self) -> dict[str, str]:
        """Parse registry endpoints into a name -> base URL mapping."""
        urls: dict[str, str] = {}
        for pair in self.registry_endpoints.split(","):
            if not pair.strip():
                continue
            if "=" not in pair:
                raise ValueError(f"Invalid registry endpoint (expected name=url): {pair!r}")
            name, url = pair.split("=", 1)
            urls[name.strip()] = url.strip().rstrip("/")
        return urls

    def get_safe_dict(self) -> dict:
        """Return settings dict with secrets redacted."""
        return {
            "environment": self.environment,
            "debug": self.debug,
            "dry_run": self.dry_run,
            "api_host": self.api_host,
            "api_port": self.api_port,
            "database_url": self._redact_url(self.database_url),
            "custody_identity": self.custody_identity,
            "registries": {
                "dry_run": self.registry_names if self.dry_run else [],
                "remote": {
                    name: self._redact_url(url) for name, url in self.registry_urls.items()
                },
                "api_key": "***" if self.registry_api_key else "(not set)",
                "timeout": self.registry_timeout,
            },
            "operation_lock_timeout": self.operation_lock_timeout,
        }

    @staticmethod
    def _redact_url(url: str) -> str:
        """Redact credentials embedded in a URL."""
        if "://" in url and "@" in url:
            proto, rest = url.split("://", 1)
            if "@" in rest:
                creds, host = rest.rsplit("@", 1)
                if ":" in creds:
                    user, _ = creds.split(":", 1)
                    return f"{proto}://{user}:***@{host}"
        return url


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
