"""Application configuration using pydantic-settings."""

from decimal import Decimal
from functools import lru_cache
from typing import Optional

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
    # Environment
    # ======================
    environment: str = Field(default="development", description="Runtime environment")
    debug: bool = Field(default=True, description="Enable debug mode")

    # ======================
    # API
    # ======================
    api_host: str = Field(default="0.0.0.0", description="API server host")
    api_port: int = Field(default=8000, description="API server port")
    cors_origins: str = Field(
        default="", description="Comma-separated list of allowed CORS origins"
    )

    # ======================
    # Database
    # ======================
    database_url: str = Field(
        default="sqlite+aiosqlite:///./data/forgebot.db",
        description="Database connection URL",
    )

    # ======================
    # Sessions
    # ======================
    session_backend: str = Field(default="memory", description="Session store: memory or database")
    session_cookie_name: str = Field(default="forgebot.sid", description="Session cookie name")
    session_ttl_seconds: int = Field(default=86400, description="Session lifetime (24h)")
    lease_timeout_seconds: float = Field(
        default=10.0, description="Max wait for a concurrent request on the same session"
    )
    workflow_timeout_seconds: int = Field(
        default=900, description="Idle time after which an in-flight workflow is discarded"
    )
    quote_ttl_seconds: int = Field(
        default=60, description="Quote validity period before confirmation is rejected"
    )

    # ======================
    # Chain
    # ======================
    dry_run: bool = Field(default=True, description="Enable dry-run mode (no real transactions)")
    base_rpc_url: str = Field(default="https://mainnet.base.org", description="Base RPC URL")
    chain_id: int = Field(default=8453, description="Base chain ID")
    explorer_tx_url: str = Field(
        default="https://basescan.org/tx/", description="Block explorer transaction URL prefix"
    )
    confirmation_timeout: int = Field(
        default=60, description="Seconds to wait for a transaction receipt"
    )
    journal_stale_after_seconds: int = Field(
        default=300, description="Age after which an unsubmitted journal entry is reported as stuck"
    )
    session_purge_interval_seconds: int = Field(
        default=600, description="Interval between sweeps of expired sessions"
    )

    # ======================
    # Swap aggregator
    # ======================
    openocean_api_url: str = Field(
        default="https://open-api.openocean.finance/v3/base",
        description="OpenOcean API base URL for the Base chain",
    )
    openocean_api_key: str = Field(default="", description="OpenOcean API key")

    # ======================
    # Gas
    # ======================
    gas_price_gwei_low: Decimal = Field(default=Decimal("1"), description="Low priority gas price")
    gas_price_gwei_medium: Decimal = Field(
        default=Decimal("5"), description="Medium priority gas price"
    )
    gas_price_gwei_high: Decimal = Field(default=Decimal("10"), description="High priority gas price")

    # ======================
    # Trading defaults
    # ======================
    default_slippage: float = Field(default=1.0, description="Default slippage tolerance (%)")
    default_gas_priority: str = Field(default="medium", description="Default gas priority")

    # ======================
    # Execution journal
    # ======================
    record_retry_attempts: int = Field(
        default=3, description="Attempts to write a transaction record after submission"
    )
    record_retry_delay: float = Field(
        default=0.5, description="Seconds between transaction record attempts"
    )

    # ======================
    # Encryption
    # ======================
    wallet_encryption_key: Optional[str] = Field(
        default=None, description="Fernet key used to encrypt stored private keys"
    )

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"

    @property
    def cors_origin_list(self) -> list[str]:
        """Parse CORS origins into a list."""
        if not self.cors_origins:
            return []
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    def gas_price_gwei(self, priority: str) -> Decimal:
        """Get configured gas price in gwei for a priority level."""
        prices = {
            "low": self.gas_price_gwei_low,
            "medium": self.gas_price_gwei_medium,
            "high": self.gas_price_gwei_high,
        }
        if priority not in prices:
            raise ValueError(f"Unknown gas priority: {priority}")
        return prices[priority]

    def get_safe_dict(self) -> dict:
        """Return settings dict with secrets redacted."""
        return {
            "environment": self.environment,
            "debug": self.debug,
            "dry_run": self.dry_run,
            "api_host": self.api_host,
            "api_port": self.api_port,
            "database_url": self._redact_url(self.database_url),
            "session": {
                "backend": self.session_backend,
                "ttl_seconds": self.session_ttl_seconds,
                "workflow_timeout_seconds": self.workflow_timeout_seconds,
                "quote_ttl_seconds": self.quote_ttl_seconds,
            },
            "chain": {
                "chain_id": self.chain_id,
                "rpc": self.base_rpc_url,
                "explorer": self.explorer_tx_url,
            },
            "aggregator": {
                "url": self.openocean_api_url,
                "api_key": "***" if self.openocean_api_key else "(not set)",
            },
            "gas_gwei": {
                "low": str(self.gas_price_gwei_low),
                "medium": str(self.gas_price_gwei_medium),
                "high": str(self.gas_price_gwei_high),
            },
            "wallet_encryption_key": "***" if self.wallet_encryption_key else "(not set)",
        }

    @staticmethod
    def _redact_url(url: str) -> str:
        """Redact sensitive parts of database URL."""
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
