"""
Configuration management for the storefront engine.

Loads settings from YAML config file, then applies environment overrides.
TTLs and retry backoff are product defaults, not fixed constants.
"""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple
import yaml

# Load environment variables from .env file
from dotenv import load_dotenv
load_dotenv()

from storefront.cache import policy


def _project_root() -> Path:
    """Return project root (parent of storefront package)."""
    return Path(__file__).resolve().parent.parent.parent


DEFAULT_CONFIG_PATH = _project_root() / "config" / "default.yaml"


@dataclass
class EngineConfig:
    """Configuration for the storefront engine."""

    # Remote API
    api_base_url: str = "http://localhost:3000/api"
    request_timeout: float = 15.0
    currency_code: Optional[str] = None     # sent as x-currency
    country_code: Optional[str] = None      # sent as x-country

    # Caching
    entity_ttl_seconds: float = policy.DEFAULT_ENTITY_TTL
    http_cache_ttl_seconds: float = policy.DEFAULT_HTTP_CACHE_TTL
    cache_key_prefix: str = policy.CACHE_KEY_PREFIX

    # Retry
    max_retries: int = policy.DEFAULT_MAX_RETRIES
    retry_base_delay: float = policy.DEFAULT_RETRY_BASE_DELAY
    retryable_status_codes: Tuple[int, ...] = field(
        default_factory=lambda: tuple(policy.RETRYABLE_STATUS_CODES)
    )

    # Credentials / persistence
    token_key: str = policy.TOKEN_KEY
    redis_url: Optional[str] = None

    # Logging
    log_level: str = "INFO"

    @classmethod
    def from_yaml(cls, config_path: Optional[Path] = None) -> "EngineConfig":
        """Load configuration from YAML file, then apply env overrides."""
        path = config_path or DEFAULT_CONFIG_PATH
        data = {}
        if path.exists():
            with open(path, 'r') as f:
                data = yaml.safe_load(f) or {}

        api_config = data.get('api', {})
        cache_config = data.get('cache', {})
        retry_config = data.get('retry', {})
        auth_config = data.get('auth', {})
        logging_config = data.get('logging', {})

        config = cls(
            api_base_url=api_config.get('base_url', "http://localhost:3000/api"),
            request_timeout=float(api_config.get('timeout', 15.0)),
            currency_code=api_config.get('currency_code'),
            country_code=api_config.get('country_code'),
            entity_ttl_seconds=float(cache_config.get('entity_ttl', policy.DEFAULT_ENTITY_TTL)),
            http_cache_ttl_seconds=float(cache_config.get('http_ttl', policy.DEFAULT_HTTP_CACHE_TTL)),
            cache_key_prefix=cache_config.get('key_prefix', policy.CACHE_KEY_PREFIX),
            max_retries=int(retry_config.get('max_retries', policy.DEFAULT_MAX_RETRIES)),
            retry_base_delay=float(retry_config.get('base_delay', policy.DEFAULT_RETRY_BASE_DELAY)),
            retryable_status_codes=tuple(
                retry_config.get('status_codes', policy.RETRYABLE_STATUS_CODES)
            ),
            token_key=auth_config.get('token_key', policy.TOKEN_KEY),
            redis_url=cache_config.get('redis_url'),
            log_level=str(logging_config.get('level', "INFO")).upper(),
        )
        return config.with_env_overrides()

    def with_env_overrides(self) -> "EngineConfig":
        """Apply STOREFRONT_* environment variables on top of file values."""
        env = os.environ
        if env.get("STOREFRONT_API_BASE_URL"):
            self.api_base_url = env["STOREFRONT_API_BASE_URL"]
        if env.get("STOREFRONT_REQUEST_TIMEOUT"):
            self.request_timeout = float(env["STOREFRONT_REQUEST_TIMEOUT"])
        if env.get("STOREFRONT_ENTITY_TTL"):
            self.entity_ttl_seconds = float(env["STOREFRONT_ENTITY_TTL"])
        if env.get("STOREFRONT_HTTP_CACHE_TTL"):
            self.http_cache_ttl_seconds = float(env["STOREFRONT_HTTP_CACHE_TTL"])
        if env.get("STOREFRONT_MAX_RETRIES"):
            self.max_retries = int(env["STOREFRONT_MAX_RETRIES"])
        if env.get("STOREFRONT_RETRY_BASE_DELAY"):
            self.retry_base_delay = float(env["STOREFRONT_RETRY_BASE_DELAY"])
        if env.get("STOREFRONT_CURRENCY"):
            self.currency_code = env["STOREFRONT_CURRENCY"]
        if env.get("STOREFRONT_COUNTRY"):
            self.country_code = env["STOREFRONT_COUNTRY"]
        if env.get("LOG_LEVEL"):
            self.log_level = env["LOG_LEVEL"].upper()
        if env.get("UPSTASH_REDIS_URL"):
            self.redis_url = env["UPSTASH_REDIS_URL"]
        elif env.get("REDIS_HOST"):
            host = env["REDIS_HOST"]
            port = env.get("REDIS_PORT", "6379")
            db = env.get("REDIS_DB", "0")
            self.redis_url = f"redis://{host}:{port}/{db}"
        return self


# Global config instance
_config: Optional[EngineConfig] = None


def get_config() -> EngineConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = EngineConfig.from_yaml()
    return _config


def set_config(config: EngineConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config
