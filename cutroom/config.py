"""Cutroom configuration via pydantic-settings."""

from __future__ import annotations

from pydantic_settings import BaseSettings

GIB = 1024 * 1024 * 1024


class CutroomSettings(BaseSettings):
    environment: str = "development"
    database_url: str = "sqlite+aiosqlite:///cutroom.db"
    echo_sql: bool = False
    app_title: str = "Cutroom Review"
    security_fail_closed: bool = False
    tenant_auth_required: bool = False
    tenant_access_tokens: str = ""
    tenant_token_header: str = "X-Org-Token"

    # Storage quota (one global limit, per-org counter)
    storage_limit_bytes: int = 100 * GIB
    quota_drift_tolerance: float = 0.02

    # Mux (remote transcoding)
    mux_token_id: str | None = None
    mux_token_secret: str | None = None
    mux_api_base: str = "https://api.mux.com"
    mux_webhook_signing_secret: str | None = None
    # 0 disables the timestamp check.
    mux_webhook_tolerance_seconds: int = 300
    mux_request_timeout_seconds: float = 15.0

    # Object storage (S3-compatible, e.g. R2)
    object_store_endpoint: str | None = None
    object_store_bucket: str | None = None
    object_store_access_key_id: str | None = None
    object_store_secret_access_key: str | None = None
    object_store_region: str = "auto"
    signed_url_ttl_seconds: int = 300

    model_config = {"env_prefix": "CUTROOM_", "env_file": ".env", "extra": "ignore"}

    @property
    def mux_configured(self) -> bool:
        return bool(self.mux_token_id and self.mux_token_secret)

    @property
    def object_store_configured(self) -> bool:
        return bool(
            self.object_store_endpoint
            and self.object_store_bucket
            and self.object_store_access_key_id
            and self.object_store_secret_access_key
        )

    @property
    def tenant_access_tokens_map(self) -> dict[str, str]:
        """``slug:token`` pairs from ``tenant_access_tokens``; malformed entries are skipped."""
        tokens: dict[str, str] = {}
        for entry in self.tenant_access_tokens.split(","):
            slug, sep, token = entry.partition(":")
            slug, token = slug.strip(), token.strip()
            if sep and slug and token:
                tokens[slug] = token
        return tokens

    @property
    def is_production(self) -> bool:
        return self.environment.strip().lower() in {"prod", "production"}


settings = CutroomSettings()
