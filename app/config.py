"""
app/config.py

Application-level configuration helpers.
"""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from db.config import load_env_files

DEFAULT_PARTY_SHAPE_ORDER: tuple[str, ...] = (
    "subject",
    "supplier",
    "contracting_party",
    "approver",
)


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    """
    Ensure project `.env` files are loaded once before reading app settings.
    """

    load_env_files()


def _get_bool_env(name: str, default: bool) -> bool:
    """
    Read a boolean from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int_env(name: str, default: int) -> int:
    """
    Read an integer from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return int(raw_value)
    except ValueError:
        return default


def _get_float_env(name: str, default: float) -> float:
    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return float(raw_value)
    except ValueError:
        return default


def _get_str_env(name: str, default: str) -> str:
    """
    Read a string from environment variables with fallback.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return default
    stripped = value.strip()
    return stripped if stripped else default


def _get_csv_env(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    items = tuple(item.strip().lower() for item in raw_value.split(",") if item.strip())
    return items or default


@dataclass(frozen=True)
class RegistryDumpSettings:
    """
    Download and staging settings for the monthly registry dumps.
    """

    base_url: str = "https://data.smlouvy.gov.cz"
    staging_dir: Path = Path(tempfile.gettempdir()) / "smlouvy-dumps"
    timeout_seconds: float = 60.0
    chunk_size_bytes: int = 1024 * 1024


@dataclass(frozen=True)
class ExtractionSettings:
    """
    Party-shape probing policy for the dump extractor.
    """

    party_shape_order: tuple[str, ...] = DEFAULT_PARTY_SHAPE_ORDER


@dataclass(frozen=True)
class SyncSettings:
    """
    Period selection and scheduling for sync runs.
    """

    months_to_process: int = 1
    include_current_month: bool = False
    schedule_day: int = 2
    schedule_hour: int = 3


@dataclass(frozen=True)
class CacheSettings:
    """
    Key-value backend and TTL settings for the query cache.
    """

    backend: str = "redis"
    redis_url: str = "redis://localhost:6379/0"
    timeout_seconds: float = 0.25
    namespace: str = "registry"
    ttl_list_seconds: int = 60 * 60
    ttl_search_seconds: int = 15 * 60
    ttl_detail_seconds: int = 24 * 60 * 60
    ttl_stats_seconds: int = 12 * 60 * 60


@lru_cache(maxsize=1)
def get_registry_dump_settings() -> RegistryDumpSettings:
    """
    Return cached dump download settings from environment variables.
    """

    default = RegistryDumpSettings()
    return RegistryDumpSettings(
        base_url=_get_str_env("REGISTRY_DUMP_BASE_URL", default.base_url),
        staging_dir=Path(_get_str_env("REGISTRY_STAGING_DIR", str(default.staging_dir))),
        timeout_seconds=max(1.0, _get_float_env("REGISTRY_HTTP_TIMEOUT_SECONDS", default.timeout_seconds)),
        chunk_size_bytes=max(1024, _get_int_env("REGISTRY_DOWNLOAD_CHUNK_BYTES", default.chunk_size_bytes)),
    )


@lru_cache(maxsize=1)
def get_extraction_settings() -> ExtractionSettings:
    """
    Return cached extraction settings.

    EXTRACT_PARTY_SHAPE_ORDER is a comma-separated list of shape names, e.g.
    ``supplier,subject,contracting_party``.
    """

    return ExtractionSettings(
        party_shape_order=_get_csv_env("EXTRACT_PARTY_SHAPE_ORDER", DEFAULT_PARTY_SHAPE_ORDER),
    )


@lru_cache(maxsize=1)
def get_sync_settings() -> SyncSettings:
    return SyncSettings(
        months_to_process=max(1, _get_int_env("SYNC_MONTHS_TO_PROCESS", 1)),
        include_current_month=_get_bool_env("SYNC_INCLUDE_CURRENT_MONTH", False),
        schedule_day=min(28, max(1, _get_int_env("SYNC_SCHEDULE_DAY", 2))),
        schedule_hour=min(23, max(0, _get_int_env("SYNC_SCHEDULE_HOUR", 3))),
    )


@lru_cache(maxsize=1)
def get_cache_settings() -> CacheSettings:
    """
    Return cached query cache settings from environment variables.
    """

    default = CacheSettings()
    backend = _get_str_env("CACHE_BACKEND", default.backend).lower()
    if backend not in {"redis", "memory"}:
        raise RuntimeError(f"CACHE_BACKEND '{backend}' is not valid. Allowed values: ['memory', 'redis'].")

    return CacheSettings(
        backend=backend,
        redis_url=_get_str_env("REDIS_URL", default.redis_url),
        timeout_seconds=max(0.01, _get_float_env("CACHE_TIMEOUT_SECONDS", default.timeout_seconds)),
        namespace=_get_str_env("CACHE_NAMESPACE", default.namespace),
        ttl_list_seconds=max(1, _get_int_env("CACHE_TTL_LIST_SECONDS", default.ttl_list_seconds)),
        ttl_search_seconds=max(1, _get_int_env("CACHE_TTL_SEARCH_SECONDS", default.ttl_search_seconds)),
        ttl_detail_seconds=max(1, _get_int_env("CACHE_TTL_DETAIL_SECONDS", default.ttl_detail_seconds)),
        ttl_stats_seconds=max(1, _get_int_env("CACHE_TTL_STATS_SECONDS", default.ttl_stats_seconds)),
    )
