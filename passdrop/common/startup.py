"""Startup-time helpers for safe config logging."""

import os

from passdrop.common.config import CommonSettings, settings
from passdrop.common.logging import logger

SECRET_MARKERS = ("KEY", "SECRET", "PASSWORD", "TOKEN")


def _safe_env(name: str) -> str:
    """Return env value with simple redaction for secret-like variable names."""

    value = os.getenv(name)
    if value is None:
        return "<unset>"
    if any(secret in name for secret in SECRET_MARKERS):
        return "<redacted>"
    return value


def startup_warnings(cfg: CommonSettings) -> list[str]:
    """Deployment gaps that leave the service running but degrade delivery."""

    warnings = []
    if cfg.shared_secret == "dev_secret":
        warnings.append("SHARED_SECRET is unset; webhook endpoints accept the development secret")
    if not cfg.store_url:
        warnings.append(f"STORE_URL is unset; persisting to local file {cfg.store_file_path}")
    elif not cfg.store_api_key:
        warnings.append("STORE_API_KEY is unset; remote store requests are unauthenticated")
    if cfg.guild_id is None:
        warnings.append("GUILD_ID is unset; product roles cannot be granted")
    if cfg.proof_channel_id is None:
        warnings.append("PROOF_CHANNEL_ID is unset; deliveries are not broadcast")
    if cfg.command_channel_id is None:
        warnings.append("COMMAND_CHANNEL_ID is unset; commands are accepted in every channel")
    return warnings


def log_startup_config(service_name: str, keys: list[str], cfg: CommonSettings = settings) -> None:
    """Log selected startup config keys, then every degraded-delivery warning."""

    config = {"service": service_name}
    for key in keys:
        config[key] = _safe_env(key)
    config["store_backend"] = "remote" if cfg.store_url else "file"
    logger.info("startup_config=%s", config)
    for warning in startup_warnings(cfg):
        logger.warning(warning)
