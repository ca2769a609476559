"""Filedrop application configuration.

Loads settings from ``filedrop.settings.yaml`` (optional) and then applies
environment overrides, which is how container deployments configure the
service:

  * PORT         -> server.port
  * CORS_ORIGIN  -> server.cors_origin
  * BASE_URL     -> server.base_url
  * UPLOAD_DIR   -> uploads.upload_dir
  * LOG_LEVEL    -> logging.level

The resulting *AppConfig* is read once at startup and never mutated.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

SETTINGS_FILE = Path("filedrop.settings.yaml")

MIB = 1024 * 1024
DAY_SECONDS = 24 * 60 * 60

_ENV_OVERRIDES = (
    # (env var, section, field)
    ("PORT",        "server",  "port"),
    ("CORS_ORIGIN", "server",  "cors_origin"),
    ("BASE_URL",    "server",  "base_url"),
    ("UPLOAD_DIR",  "uploads", "upload_dir"),
    ("LOG_LEVEL",   "logging", "level"),
)


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        logger.warning("Config file not found: %s", path)
        return {}
    with path.open(encoding="utf-8") as fh:
        return yaml.safe_load(fh) or {}


# ---------------------------------------------------------------------------
# Settings models
# ---------------------------------------------------------------------------


class ServerSettings(BaseModel):
    host:        str           = "0.0.0.0"
    port:        int           = Field(default=3000, ge=1, le=65535)
    base_url:    Optional[str] = None
    cors_origin: str           = "*"

    @field_validator("base_url")
    @classmethod
    def _strip_base_url(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip().rstrip("/")
        return value or None


class UploadSettings(BaseModel):
    """Upload policy and storage location."""
    upload_dir:          str       = "./uploads"
    max_file_size_bytes: int       = Field(default=10 * MIB, gt=0)
    max_files:           int       = Field(default=1, gt=0)
    allowed_mime_types:  List[str] = Field(
        default_factory=lambda: ["image/jpeg", "image/png", "image/gif"]
    )

    @field_validator("allowed_mime_types")
    @classmethod
    def _normalise_mime_types(cls, value: List[str]) -> List[str]:
        cleaned = [v.strip().lower() for v in value if v and v.strip()]
        if not cleaned:
            raise ValueError("allowed_mime_types must not be empty")
        return cleaned


class RetentionSettings(BaseModel):
    """Age-based cleanup of stored files."""
    enabled:                bool = True
    max_age_seconds:        int  = Field(default=7 * DAY_SECONDS, gt=0)
    sweep_interval_seconds: int  = Field(default=DAY_SECONDS, gt=0)
    max_concurrency:        int  = Field(default=32, gt=0)


class LoggingSettings(BaseModel):
    level: str = "info"


class AppConfig(BaseModel):
    server:    ServerSettings    = Field(default_factory=ServerSettings)
    uploads:   UploadSettings    = Field(default_factory=UploadSettings)
    retention: RetentionSettings = Field(default_factory=RetentionSettings)
    logging:   LoggingSettings   = Field(default_factory=LoggingSettings)


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


def _apply_env_overrides(data: Dict[str, Any], environ: Dict[str, str]) -> None:
    for env_key, section, field_name in _ENV_OVERRIDES:
        value = environ.get(env_key)
        if value is None or value == "":
            continue
        data.setdefault(section, {})[field_name] = value
        logger.debug("Config override from env: %s", env_key)


def _resolve_upload_dir(data: Dict[str, Any], settings_path: Path) -> None:
    """Relative upload_dir in a settings file is relative to that file."""
    uploads = data.get("uploads") or {}
    raw = uploads.get("upload_dir")
    if not raw:
        return
    path = Path(raw)
    if not path.is_absolute():
        uploads["upload_dir"] = str(settings_path.parent / path)


def load_config(
    settings_path: Optional[Path] = None,
    environ: Optional[Dict[str, str]] = None,
) -> AppConfig:
    """Load settings file + environment into a single *AppConfig*."""
    path = Path(settings_path) if settings_path is not None else SETTINGS_FILE
    env = dict(os.environ) if environ is None else environ

    data = _load_yaml(path)
    _resolve_upload_dir(data, path)
    _apply_env_overrides(data, env)

    config = AppConfig(**data)
    logger.info(
        "Settings loaded (port=%s, upload_dir=%s, retention=%ss every %ss)",
        config.server.port,
        config.uploads.upload_dir,
        config.retention.max_age_seconds,
        config.retention.sweep_interval_seconds,
    )
    return config


_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Return the process-wide configuration, loading it on first use."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def set_config(config: Optional[AppConfig]) -> None:
    """Replace the process-wide configuration (``None`` forces a reload)."""
    global _config
    _config = config
