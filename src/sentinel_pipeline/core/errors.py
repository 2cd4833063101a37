from __future__ import annotations


class SentinelError(Exception):
    """파이프라인 공통 예외."""


class ConfigurationError(SentinelError):
    """치명적 설정 오류 (스케줄러 시작 거부)."""


class ModelError(SentinelError):
    """rate limit 이외의 모델 호출 실패."""


class RateLimitError(ModelError):
    # retry_after: 업스트림이 준 재시도 힌트(초), 없으면 None
    def __init__(self, message: str = "rate limited", retry_after: float | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class CooldownActiveError(SentinelError):
    """cooldown 중이라 모델 호출을 시도하지 않음."""
