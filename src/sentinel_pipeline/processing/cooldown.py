from __future__ import annotations

import datetime
import threading
from typing import Callable

from sentinel_pipeline.core.constants import (
    RATE_LIMIT_DEFAULT_DELAY_SEC,
    RATE_LIMIT_MAX_DELAY_SEC,
    RATE_LIMIT_MIN_DELAY_SEC,
)


def clamp_retry_delay(hint: float | None) -> float:
    """rate limit 대기 시간: 힌트 없으면 60초, [15, 120]초로 제한."""
    if hint is None:
        delay = float(RATE_LIMIT_DEFAULT_DELAY_SEC)
    else:
        try:
            delay = float(hint)
        except (TypeError, ValueError):
            delay = float(RATE_LIMIT_DEFAULT_DELAY_SEC)
    return min(max(delay, RATE_LIMIT_MIN_DELAY_SEC), RATE_LIMIT_MAX_DELAY_SEC)


class CooldownGate:
    """프로세스 전역 "cooldown-until" 타임스탬프.

    스레드(타이머, 수동 실행)가 공유하므로 비교/설정은 lock 안에서 한다.
    지난 타임스탬프는 별도 해제 없이 자연히 비활성이 된다.
    """

    def __init__(self, now_provider: Callable[[], datetime.datetime] | None = None) -> None:
        self._now_provider = now_provider or (
            lambda: datetime.datetime.now(datetime.timezone.utc)
        )
        self._until: datetime.datetime | None = None
        self._lock = threading.Lock()
        self.trigger_count = 0

    @property
    def until(self) -> datetime.datetime | None:
        with self._lock:
            return self._until

    def is_active(self) -> bool:
        with self._lock:
            return self._until is not None and self._now_provider() < self._until

    def remaining_seconds(self) -> float:
        with self._lock:
            if self._until is None:
                return 0.0
            return max(0.0, (self._until - self._now_provider()).total_seconds())

    def trigger(self, retry_after: float | None = None) -> float:
        delay = clamp_retry_delay(retry_after)
        with self._lock:
            candidate = self._now_provider() + datetime.timedelta(seconds=delay)
            # 이미 더 긴 cooldown이 걸려 있으면 줄이지 않는다
            if self._until is None or candidate > self._until:
                self._until = candidate
            self.trigger_count += 1
        return delay
