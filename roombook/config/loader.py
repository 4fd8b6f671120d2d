from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, List

import yaml

_CONFIG_PATH = Path(__file__).resolve().parent / "config.yaml"

_DEFAULT_ACCESS_TOKEN_EXPIRE_MINUTES = 24 * 60
_DEFAULT_PAGINATION = {
    "default_limit": 10,
    "max_limit": 100,
}
_DEFAULT_REPORTING = {
    "top_users_limit": 10,
    "recent_meetings_limit": 10,
    "upcoming_window_days": 7,
    "utilization_window_days": 30,
}
_DEFAULT_IDENTITY_PROVIDER = {
    "client_id": "",
    "client_secret": "",
    "redirect_url": "http://localhost:8000/api/auth/callback",
    "tenant": "common",
    "authority_url": "https://login.microsoftonline.com",
    "graph_url": "https://graph.microsoft.com/v1.0",
    "scopes": ["openid", "profile", "email", "User.Read"],
    "timeout_seconds": 10,
}
_DEFAULT_CORS_ORIGINS = ["http://localhost:3000"]
_DEFAULT_DATABASE_URL = "sqlite:///./roombook.db"
_DEFAULT_SQLITE_PRAGMAS = {
    "journal_mode": "WAL",
    "synchronous": "NORMAL",
}
_DEFAULT_SQLITE_WRITES = {
    "busy_timeout_ms": 30000,
    "write_retries": 5,
    "retry_backoff_ms": 200,
}
_DEFAULT_POOL = {
    "pool_size": ("pool_size", 20),
    "max_overflow": ("max_overflow", 40),
    "pool_timeout_seconds": ("pool_timeout", 15),
    "pool_recycle_seconds": ("pool_recycle", 1800),
}


def load_config() -> Dict[str, Any]:
    """Load the application config from YAML, returning an empty mapping on error."""
    try:
        with _CONFIG_PATH.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
            if isinstance(data, dict):
                return data
            logging.warning(
                "Config file %s is not a mapping; using defaults.", _CONFIG_PATH
            )
            return {}
    except FileNotFoundError:
        logging.debug("Configuration file %s not found; using defaults.", _CONFIG_PATH)
        return {}
    except Exception as exc:  # noqa: BLE001
        logging.error("Failed to load configuration from %s: %s", _CONFIG_PATH, exc)
        return {}


def _coerce_positive_int(value: Any, fallback: int) -> int:
    try:
        candidate = int(value)
        return candidate if candidate > 0 else fallback
    except Exception:  # noqa: BLE001
        return fallback


def _coerce_bool(value: Any, fallback: bool) -> bool:
    if value is None:
        return fallback
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def _coerce_str_list(value: Any, fallback: List[str]) -> List[str]:
    if isinstance(value, str):
        items = [part.strip() for part in value.split(",")]
    elif isinstance(value, (list, tuple)):
        items = [str(part).strip() for part in value]
    else:
        return list(fallback)
    cleaned = [item for item in items if item]
    return cleaned or list(fallback)


def is_production_mode() -> bool:
    env = os.getenv("ROOMBOOK_ENV", "development").strip().lower()
    return env in {"production", "prod"}


def get_access_token_expire_minutes() -> int:
    """
    Token lifetime in minutes.

    Priority: config.yaml auth.access_token_expire_minutes, then
    ROOMBOOK_ACCESS_TOKEN_EXPIRE_MINUTES, then one day.
    """
    config = load_config()
    section = config.get("auth") or {}
    config_value = _coerce_positive_int(section.get("access_token_expire_minutes"), 0)
    if config_value:
        return config_value
    env_value = _coerce_positive_int(
        os.getenv("ROOMBOOK_ACCESS_TOKEN_EXPIRE_MINUTES"), 0
    )
    if env_value:
        return env_value
    return _DEFAULT_ACCESS_TOKEN_EXPIRE_MINUTES


def get_pagination_settings() -> Dict[str, int]:
    """Return pagination bounds; max_limit is never below default_limit."""
    config = load_config()
    section = config.get("pagination") or {}
    default_limit = _coerce_positive_int(
        section.get("default_limit"), _DEFAULT_PAGINATION["default_limit"]
    )
    max_limit = _coerce_positive_int(
        section.get("max_limit"), _DEFAULT_PAGINATION["max_limit"]
    )
    return {
        "default_limit": min(default_limit, max_limit),
        "max_limit": max_limit,
    }


def get_reporting_settings() -> Dict[str, int]:
    config = load_config()
    section = config.get("reporting") or {}
    defaults = dict(_DEFAULT_REPORTING)
    return {
        key: _coerce_positive_int(section.get(key), fallback)
        for key, fallback in defaults.items()
    }


def get_identity_provider_settings() -> Dict[str, Any]:
    """
    Return OAuth settings for the external identity provider.

    Environment variables win over config.yaml so that secrets never need to
    live in the file.
    """
    config = load_config()
    section = config.get("identity_provider") or {}
    defaults = dict(_DEFAULT_IDENTITY_PROVIDER)

    def _pick(env_name: str, key: str) -> str:
        env_value = os.getenv(env_name)
        if env_value is not None and env_value.strip():
            return env_value.strip()
        value = section.get(key)
        if value is None or not str(value).strip():
            return defaults[key]
        return str(value).strip()

    return {
        "client_id": _pick("ROOMBOOK_IDP_CLIENT_ID", "client_id"),
        "client_secret": _pick("ROOMBOOK_IDP_CLIENT_SECRET", "client_secret"),
        "redirect_url": _pick("ROOMBOOK_IDP_REDIRECT_URL", "redirect_url"),
        "tenant": _pick("ROOMBOOK_IDP_TENANT", "tenant"),
        "authority_url": _pick("ROOMBOOK_IDP_AUTHORITY_URL", "authority_url").rstrip("/"),
        "graph_url": _pick("ROOMBOOK_IDP_GRAPH_URL", "graph_url").rstrip("/"),
        "scopes": _coerce_str_list(section.get("scopes"), defaults["scopes"]),
        "timeout_seconds": _coerce_positive_int(
            section.get("timeout_seconds"), defaults["timeout_seconds"]
        ),
    }


def get_cors_origins() -> List[str]:
    env_value = os.getenv("ROOMBOOK_CORS_ORIGINS")
    if env_value is not None:
        return _coerce_str_list(env_value, _DEFAULT_CORS_ORIGINS)
    config = load_config()
    section = config.get("cors") or {}
    return _coerce_str_list(section.get("allowed_origins"), _DEFAULT_CORS_ORIGINS)


def get_audit_enabled() -> bool:
    config = load_config()
    section = config.get("audit") or {}
    return _coerce_bool(section.get("enabled"), True)


def get_database_url() -> str:
    """ROOMBOOK_DATABASE_URL, then config.yaml database_url, then a local SQLite file."""
    env_value = os.getenv("ROOMBOOK_DATABASE_URL")
    if env_value:
        return env_value
    url = load_config().get("database_url")
    return str(url) if url else _DEFAULT_DATABASE_URL


def get_sqlite_settings() -> Dict[str, Any]:
    section = load_config().get("sqlite") or {}
    settings: Dict[str, Any] = {
        key: str(section.get(key) or fallback)
        for key, fallback in _DEFAULT_SQLITE_PRAGMAS.items()
    }
    settings.update(
        {
            key: _coerce_positive_int(section.get(key), fallback)
            for key, fallback in _DEFAULT_SQLITE_WRITES.items()
        }
    )
    return settings


def get_pool_settings() -> Dict[str, int]:
    """Connection pool sizing for server databases, keyed as create_engine expects."""
    section = load_config().get("database_pool") or {}
    return {
        engine_key: _coerce_positive_int(section.get(config_key), fallback)
        for config_key, (engine_key, fallback) in _DEFAULT_POOL.items()
    }
