from __future__ import annotations

import logging
import threading
from collections import deque
from typing import Any

from sentinel_pipeline.core.constants import LOG_BUFFER_SIZE
from sentinel_pipeline.processing.types import NowFunc, utc_now
from sentinel_pipeline.utils import to_iso

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


class SentinelLog:
    """최근 로그 N건을 보관하는 버퍼 (health 응답용). logging으로도 그대로 흘려보낸다."""

    def __init__(
        self,
        *,
        maxlen: int = LOG_BUFFER_SIZE,
        logger: logging.Logger | None = None,
        now_provider: NowFunc = utc_now,
    ) -> None:
        self._entries: deque[dict[str, Any]] = deque(maxlen=maxlen)
        self._logger = logger or logging.getLogger("sentinel_pipeline")
        self._now_provider = now_provider
        self._lock = threading.Lock()
        self.last_error: dict[str, Any] | None = None

    def __len__(self) -> int:
        return len(self._entries)

    def push(self, level: str, message: str) -> None:
        level = (level or "info").lower()
        entry = {"timestamp": to_iso(self._now_provider()), "level": level, "message": message}
        with self._lock:
            self._entries.append(entry)
            if level == "error":
                self.last_error = entry
        self._logger.log(_LEVELS.get(level, logging.INFO), message)

    # LogFunc 시그니처로 주입하기 위한 별칭
    def log(self, level: str, message: str) -> None:
        self.push(level, message)

    def recent(self, limit: int = 20) -> list[dict[str, Any]]:
        with self._lock:
            entries = list(self._entries)
        return entries[-limit:] if limit > 0 else entries
