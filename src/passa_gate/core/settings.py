"""Application settings and configuration.

This module defines all configuration options for the Passa gate service.
Settings are loaded from environment variables with sensible defaults.
Signing key material is optional here; its absence is reported when the
key ring is built at startup (see `passa_gate.services.keys`).
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="Passa Gate", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Database configuration
    database_url: str = Field(default="sqlite:///./passa_gate.db", alias="DATABASE_URL")
    test_database_url: str | None = Field(default=None, alias="TEST_DATABASE_URL")
    use_testing_database: bool = Field(default=False, alias="USE_TEST_DATABASE")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Ticket credential signing
    ticket_signing_algorithm: Literal["ed25519", "hmac-sha256"] = Field(
        default="ed25519",
        alias="TICKET_SIGNING_ALGORITHM",
    )
    ticket_signing_private_key: str | None = Field(
        default=None,
        alias="TICKET_SIGNING_PRIVATE_KEY",
    )
    ticket_verify_public_key: str | None = Field(
        default=None,
        alias="TICKET_VERIFY_PUBLIC_KEY",
    )
    ticket_hmac_secret: str | None = Field(default=None, alias="TICKET_HMAC_SECRET")
    ticket_credential_ttl_hours: int = Field(
        default=24,
        alias="TICKET_CREDENTIAL_TTL_HOURS",
        gt=0,
    )

    # Replay ledger retention (see scripts/purge_scans.py)
    scan_record_retention_days: int = Field(
        default=30,
        alias="SCAN_RECORD_RETENTION_DAYS",
        gt=0,
    )

    # Escrow release coordination
    escrow_claim_stale_seconds: int = Field(
        default=300,
        alias="ESCROW_CLAIM_STALE_SECONDS",
        gt=0,
    )

    # Chain gateway integration settings
    chain_gateway_base_url: str | None = Field(default=None, alias="CHAIN_GATEWAY_BASE_URL")
    chain_gateway_shared_secret: str | None = Field(
        default=None,
        alias="CHAIN_GATEWAY_SHARED_SECRET",
    )
    chain_gateway_audience: str = Field(
        default="passa-chain-gateway",
        alias="CHAIN_GATEWAY_AUDIENCE",
    )
    chain_gateway_instance_id: str = Field(
        default="passa-gate",
        alias="CHAIN_GATEWAY_INSTANCE_ID",
    )
    chain_gateway_token_ttl_seconds: int = Field(
        default=300,
        alias="CHAIN_GATEWAY_TOKEN_TTL_SECONDS",
    )
    chain_gateway_timeout_seconds: float = Field(
        default=30.0,
        alias="CHAIN_GATEWAY_TIMEOUT_SECONDS",
    )
    chain_token_asset: str = Field(default="native", alias="CHAIN_TOKEN_ASSET")

    # CORS configuration for web frontend access
    cors_origins: list[str] = Field(
        default=["*"],
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(
        default=["*"],
        alias="CORS_ALLOW_HEADERS",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def database_url_sync(self) -> str:
        """Return a sync-compatible database URL for tooling.

        Converts asyncpg URLs to psycopg for synchronous database operations
        like Alembic migrations.
        """
        url = self.effective_database_url
        if url.startswith("postgresql+asyncpg"):
            return url.replace("postgresql+asyncpg", "postgresql+psycopg", 1)
        return url

    @property
    def effective_database_url(self) -> str:
        """Return the database URL respecting testing overrides."""
        if self.use_testing_database and self.test_database_url:
            return self.test_database_url
        return self.database_url

    @property
    def chain_gateway_enabled(self) -> bool:
        return bool(self.chain_gateway_base_url)


settings = Settings()
