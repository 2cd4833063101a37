from __future__ import annotations

import os
from dataclasses import dataclass

from sentinel_pipeline.core.constants import FEED_ACCEPT, FEED_USER_AGENT


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except Exception:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except Exception:
        return default


GUID_CACHE_MAX = 5000


@dataclass(frozen=True)
class FeedFetcherConfig:
    timeout_sec: int = 20
    max_retries: int = 2  # 첫 시도 이후 추가 시도 횟수
    backoff_sec: float = 1.0  # attempt마다 2배
    max_entries_per_feed: int = 50
    guid_cache_max: int = GUID_CACHE_MAX
    user_agent: str = FEED_USER_AGENT
    accept: str = FEED_ACCEPT

    @classmethod
    def from_env(cls) -> "FeedFetcherConfig":
        return cls(
            timeout_sec=_env_int("SENTINEL_FETCH_TIMEOUT_SEC", 20),
            max_retries=max(0, _env_int("SENTINEL_FETCH_MAX_RETRIES", 2)),
            backoff_sec=max(0.0, _env_float("SENTINEL_FETCH_BACKOFF_SEC", 1.0)),
            max_entries_per_feed=max(1, _env_int("SENTINEL_MAX_ENTRIES_PER_FEED", 50)),
        )
