"""
Runtime configuration.

Values come from the process environment; a local .env file is loaded first
(python-dotenv) so API keys do not have to be exported by hand.

Using Settings.from_env() instead of module-level constants keeps tests
independent of the developer's environment: tests build Settings(...) directly.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

from gpaplanner.errors import ConfigError


PACKAGE_DIR = Path(__file__).resolve().parent

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

_TRUE = {"1", "true", "yes", "on"}


def _get_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in _TRUE


def _get_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from None


def _get_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from None


def _get_str(env: Mapping[str, str], name: str) -> Optional[str]:
    raw = env.get(name)
    if raw is None:
        return None
    raw = raw.strip()
    return raw or None


@dataclass(frozen=True)
class Settings:
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o"
    openai_base_url: Optional[str] = None
    google_api_key: Optional[str] = None
    google_search_cx: Optional[str] = None
    use_function_calling: bool = False

    default_university: str = "Georgia Tech"
    headless: bool = True
    navigation_timeout_ms: int = 30000
    selector_timeout_ms: int = 10000

    cache_ttl_seconds: Optional[float] = 3600.0
    cache_max_entries: int = 512

    max_retries: int = 3
    retry_base_delay: float = 1.0

    debug_snapshots: bool = False
    debug_dir: Path = PACKAGE_DIR / "data" / "debug"
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build settings from environment variables.

        When env is None, .env is loaded into os.environ first.
        A cache TTL of 0 disables expiry.
        """
        if env is None:
            load_dotenv()
            env = os.environ

        ttl = _get_float(env, "GPAPLANNER_CACHE_TTL", 3600.0)
        debug_dir = _get_str(env, "GPAPLANNER_DEBUG_DIR")
        log_level = (_get_str(env, "GPAPLANNER_LOG_LEVEL") or "INFO").upper()
        if log_level not in LOG_LEVELS:
            raise ConfigError(f"GPAPLANNER_LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}, got {log_level!r}")

        return cls(
            openai_api_key=_get_str(env, "OPENAI_API_KEY"),
            openai_model=_get_str(env, "OPENAI_MODEL") or "gpt-4o",
            openai_base_url=_get_str(env, "OPENAI_BASE_URL"),
            google_api_key=_get_str(env, "GOOGLE_API_KEY"),
            google_search_cx=_get_str(env, "GOOGLE_SEARCH_CX"),
            use_function_calling=_get_bool(env, "USE_FUNCTION_CALLING", False),
            default_university=_get_str(env, "GPAPLANNER_UNIVERSITY") or "Georgia Tech",
            headless=_get_bool(env, "GPAPLANNER_HEADLESS", True),
            navigation_timeout_ms=_get_int(env, "GPAPLANNER_NAV_TIMEOUT_MS", 30000),
            selector_timeout_ms=_get_int(env, "GPAPLANNER_SELECTOR_TIMEOUT_MS", 10000),
            cache_ttl_seconds=ttl if ttl > 0 else None,
            cache_max_entries=_get_int(env, "GPAPLANNER_CACHE_SIZE", 512),
            max_retries=_get_int(env, "GPAPLANNER_MAX_RETRIES", 3),
            retry_base_delay=_get_float(env, "GPAPLANNER_RETRY_DELAY", 1.0),
            debug_snapshots=_get_bool(env, "GPAPLANNER_DEBUG_SNAPSHOTS", False),
            debug_dir=Path(debug_dir) if debug_dir else PACKAGE_DIR / "data" / "debug",
            log_level=log_level,
        )
