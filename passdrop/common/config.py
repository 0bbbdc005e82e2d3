"""Central environment-driven settings for the webhook server and chat bot.

The process loads this once at startup. Behavior is controlled by environment
variables (see `.env.example`). `DISCORD_TOKEN` has no default: a missing
token fails validation and halts startup.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class CommonSettings(BaseSettings):
    """Typed view of runtime configuration from environment variables."""

    service_name: str = "passdrop"
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 3000

    discord_token: str
    shared_secret: str = "dev_secret"
    guild_id: int | None = None
    command_channel_id: int | None = None
    proof_channel_id: int | None = None
    notice_ttl_seconds: float = 10.0

    store_url: str = ""
    store_api_key: str = ""
    store_api_key_header: str = "X-Master-Key"
    store_file_path: str = "storage/db.json"
    flush_debounce_seconds: float = 1.0
    flush_max_attempts: int = 3
    flush_retry_backoff_seconds: float = 1.0
    cache_ttl_seconds: float = 300.0

    users_api_url: str = "https://users.roblox.com"
    inventory_api_url: str = "https://inventory.roblox.com"
    http_timeout_seconds: float = 10.0

    catalog_path: str = ""
    otel_exporter_otlp_endpoint: str = ""
    model_config = SettingsConfigDict(env_file=".env", env_ignore_empty=True, extra="ignore")


settings = CommonSettings()
