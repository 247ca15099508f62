"""YAML configuration loader with env var resolution and Pydantic validation.

Loads config from (priority order):
1. --config <path> CLI flag
2. ./shopickup.yaml (working directory)
3. ~/.shopickup/config.yaml (user home)

Environment variables override YAML: SHOPICKUP_<SECTION>_<KEY>.
${VAR} references in YAML values resolve from environment at load time.
"""

import logging
import os
import re
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field

from shopickup.adapters.foxpost.adapter import FOXPOST_APM_FEED_URL, FOXPOST_PROD_URL, FOXPOST_TEST_URL
from shopickup.adapters.gls.adapter import GLS_DELIVERY_POINTS_URL
from shopickup.adapters.mpl.adapter import (
    MPL_PROD_URL,
    MPL_TEST_URL,
    MPL_TRACKING_PROD_URL,
    MPL_TRACKING_TEST_URL,
)
from shopickup.adapters.mpl.auth import MPL_OAUTH_PROD_URL, MPL_OAUTH_TEST_URL
from shopickup.utils.log_helpers import DEFAULT_SILENT_OPERATIONS, LoggingOptions

logger = logging.getLogger(__name__)

_ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")


def resolve_env_vars(value: str) -> str:
    """Resolve ${VAR} references in a string from environment variables.

    Args:
        value: String potentially containing ${VAR} references.

    Returns:
        String with all ${VAR} references replaced by their env values.
        Missing env vars resolve to empty string.
    """
    def _replace(match: re.Match) -> str:
        return os.environ.get(match.group(1), "")

    return _ENV_VAR_PATTERN.sub(_replace, value)


def _resolve_env_vars_recursive(data: Any) -> Any:
    if isinstance(data, str):
        return resolve_env_vars(data)
    elif isinstance(data, dict):
        return {k: _resolve_env_vars_recursive(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_resolve_env_vars_recursive(item) for item in data]
    return data


class ServerConfig(BaseModel):
    """Configuration for the dev-server process."""

    host: str = "127.0.0.1"
    port: int = 8000
    log_level: str = "info"
    tracing: bool = True


class HttpConfig(BaseModel):
    """Outbound HTTP client settings."""

    timeout_seconds: float = Field(default=30.0, gt=0)


class FoxpostConfig(BaseModel):
    prod_base_url: str = FOXPOST_PROD_URL
    test_base_url: str = FOXPOST_TEST_URL
    apm_feed_url: str = FOXPOST_APM_FEED_URL


class GLSConfig(BaseModel):
    delivery_points_url: str = GLS_DELIVERY_POINTS_URL


class MPLConfig(BaseModel):
    prod_base_url: str = MPL_PROD_URL
    test_base_url: str = MPL_TEST_URL
    oauth_prod_url: str = MPL_OAUTH_PROD_URL
    oauth_test_url: str = MPL_OAUTH_TEST_URL
    tracking_prod_url: str = MPL_TRACKING_PROD_URL
    tracking_test_url: str = MPL_TRACKING_TEST_URL


class BatchConfig(BaseModel):
    """Fan-out limits for adapters that create items one call at a time."""

    max_concurrency: int = Field(default=5, ge=1)


class LoggingConfig(BaseModel):
    """Log volume controls passed to adapters as LoggingOptions."""

    max_array_items: int = Field(default=10, ge=0)
    max_depth: int = Field(default=2, ge=0)
    log_raw_response: bool | Literal["summary"] = "summary"
    log_metadata: bool = False
    silent_operations: list[str] = Field(default_factory=lambda: list(DEFAULT_SILENT_OPERATIONS))

    def to_options(self) -> LoggingOptions:
        return LoggingOptions(
            max_array_items=self.max_array_items,
            max_depth=self.max_depth,
            log_raw_response=self.log_raw_response,
            log_metadata=self.log_metadata,
            silent_operations=tuple(self.silent_operations),
        )


class ShopickupConfig(BaseModel):
    """Top-level configuration for the dev-server and adapter registry."""

    server: ServerConfig = ServerConfig()
    http: HttpConfig = HttpConfig()
    foxpost: FoxpostConfig = FoxpostConfig()
    gls: GLSConfig = GLSConfig()
    mpl: MPLConfig = MPLConfig()
    batch: BatchConfig = BatchConfig()
    logging: LoggingConfig = LoggingConfig()


def _find_config_file() -> Path | None:
    """Search for config file in standard locations.

    Returns:
        Path to config file if found, None otherwise.
    """
    candidates = [
        Path.cwd() / "shopickup.yaml",
        Path.cwd() / "shopickup.yml",
        Path.home() / ".shopickup" / "config.yaml",
        Path.home() / ".shopickup" / "config.yml",
    ]
    for candidate in candidates:
        if candidate.exists():
            return candidate
    return None


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Apply SHOPICKUP_<SECTION>_<KEY> env var overrides to config data.

    For example, ``SHOPICKUP_SERVER_PORT=9000`` sets ``server.port``.
    Values that parse as integers or booleans are coerced; pydantic does
    the remaining conversion.

    Args:
        data: Parsed YAML config dict.

    Returns:
        Config dict with env var overrides applied.
    """
    prefix = "SHOPICKUP_"
    # Known sections sorted longest-first so greedy prefix match works.
    known_sections = sorted(
        ShopickupConfig.model_fields.keys(), key=len, reverse=True
    )
    for key, value in os.environ.items():
        if not key.startswith(prefix):
            continue
        suffix = key[len(prefix):].lower()
        matched_section = None
        matched_field = None
        for section in known_sections:
            section_prefix = section + "_"
            if suffix.startswith(section_prefix):
                matched_section = section
                matched_field = suffix[len(section_prefix):]
                break
        if matched_section is None or not matched_field:
            continue
        if not isinstance(data.get(matched_section), dict):
            data[matched_section] = {}
        # Coerce to int, bool, or keep as string
        try:
            data[matched_section][matched_field] = int(value)
        except ValueError:
            if value.lower() in ("true", "false"):
                data[matched_section][matched_field] = value.lower() == "true"
            else:
                data[matched_section][matched_field] = value
    return data


def load_config(config_path: str | None = None) -> ShopickupConfig:
    """Load Shopickup configuration from YAML file with env var resolution.

    Args:
        config_path: Explicit path to config file. If None, searches
            standard locations (cwd, then ~/.shopickup/).

    Returns:
        Parsed and validated ShopickupConfig. Without a config file the
        defaults apply, still subject to SHOPICKUP_ env overrides.

    Raises:
        FileNotFoundError: If config_path is given and does not exist.
    """
    if config_path:
        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
    else:
        path = _find_config_file()

    raw_data: dict[str, Any] = {}
    if path is not None:
        logger.info("Loading config from %s", path)
        with open(path) as f:
            raw_data = yaml.safe_load(f) or {}
    else:
        logger.info("No config file found, using defaults")

    # Resolve ${VAR} references
    data = _resolve_env_vars_recursive(raw_data)

    # Apply SHOPICKUP_ env var overrides
    data = _apply_env_overrides(data)

    return ShopickupConfig(**data)
