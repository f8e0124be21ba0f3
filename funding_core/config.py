from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from typing import Mapping, Optional

logger = logging.getLogger(__name__)

DEFAULT_DATASET_URL = "funding-lite.sqlite"
DEFAULT_TABLE = "mytable"
REQUEST_CHUNK_SIZE = 4096
READ_AHEAD_CHUNKS = 16
MAX_BYTES_TO_READ = 10 * 1024 * 1024
QUERY_TIMEOUT_SECONDS = 30.0
HTTP_TIMEOUT_SECONDS = 30.0
ITEMS_PER_PAGE = 15
TOP_N = 5

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def validate_identifier(name: str) -> str:
    if not _IDENTIFIER.match(name or ""):
        raise ValueError(f"Invalid table name: {name!r}")
    return name


@dataclass(frozen=True)
class DatasetConfig:
    url: str = DEFAULT_DATASET_URL
    table: str = DEFAULT_TABLE
    request_chunk_size: int = REQUEST_CHUNK_SIZE
    read_ahead_chunks: int = READ_AHEAD_CHUNKS
    max_bytes_to_read: int = MAX_BYTES_TO_READ
    query_timeout: Optional[float] = QUERY_TIMEOUT_SECONDS
    http_timeout: float = HTTP_TIMEOUT_SECONDS

    def __post_init__(self) -> None:
        validate_identifier(self.table)
        if self.request_chunk_size <= 0:
            raise ValueError("request_chunk_size must be positive")
        if self.read_ahead_chunks <= 0:
            raise ValueError("read_ahead_chunks must be positive")
        if self.max_bytes_to_read <= 0:
            raise ValueError("max_bytes_to_read must be positive")

    @property
    def is_remote(self) -> bool:
        return self.url.lower().startswith(("http://", "https://"))


@dataclass(frozen=True)
class DashboardConfig:
    dataset: DatasetConfig = field(default_factory=DatasetConfig)
    items_per_page: int = ITEMS_PER_PAGE
    top_n: int = TOP_N


def _env_int(environ: Mapping[str, str], key: str, default: int) -> int:
    raw = (environ.get(key) or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r (not an integer), using %s", key, raw, default)
        return default
    if value <= 0:
        logger.warning("Ignoring %s=%r (must be positive), using %s", key, raw, default)
        return default
    return value


def _env_seconds(environ: Mapping[str, str], key: str, default: Optional[float]) -> Optional[float]:
    if key not in environ:
        return default
    raw = (environ.get(key) or "").strip()
    if not raw:
        return None
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r (not a number), using %s", key, raw, default)
        return default
    return value if value > 0 else None


def load_config(environ: Optional[Mapping[str, str]] = None) -> DashboardConfig:
    """Resolve configuration from FUNDING_* environment variables."""
    env = os.environ if environ is None else environ
    dataset = DatasetConfig(
        url=(env.get("FUNDING_DB_URL") or DEFAULT_DATASET_URL).strip(),
        table=(env.get("FUNDING_DB_TABLE") or DEFAULT_TABLE).strip(),
        request_chunk_size=_env_int(env, "FUNDING_CHUNK_SIZE", REQUEST_CHUNK_SIZE),
        read_ahead_chunks=_env_int(env, "FUNDING_READ_AHEAD", READ_AHEAD_CHUNKS),
        max_bytes_to_read=_env_int(env, "FUNDING_MAX_BYTES", MAX_BYTES_TO_READ),
        query_timeout=_env_seconds(env, "FUNDING_QUERY_TIMEOUT", QUERY_TIMEOUT_SECONDS),
        http_timeout=_env_seconds(env, "FUNDING_HTTP_TIMEOUT", HTTP_TIMEOUT_SECONDS) or HTTP_TIMEOUT_SECONDS,
    )
    return DashboardConfig(
        dataset=dataset,
        items_per_page=_env_int(env, "FUNDING_ITEMS_PER_PAGE", ITEMS_PER_PAGE),
        top_n=_env_int(env, "FUNDING_TOP_N", TOP_N),
    )
