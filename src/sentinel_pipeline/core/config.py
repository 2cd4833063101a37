from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

try:
    from dotenv import load_dotenv
except Exception:  # pragma: no cover - optional dependency
    load_dotenv = None

from sentinel_pipeline.core.constants import DEFAULT_SOURCES, SOURCE_PRIORITIES
from sentinel_pipeline.models import Source

logger = logging.getLogger(__name__)

REPO_ROOT = Path(__file__).resolve().parents[3]

if load_dotenv:
    load_dotenv(dotenv_path=REPO_ROOT / ".env")

DATA_DIR = Path(os.getenv("DATA_DIR", str(REPO_ROOT / "data")))


def _parse_csv_env(name: str) -> list[str]:
    """CSV 형태의 환경변수를 리스트로 파싱."""
    raw = os.getenv(name, "").strip()
    if not raw:
        return []
    return [x.strip() for x in raw.split(",") if x.strip()]


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


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    return raw in {"1", "true", "True", "yes", "YES"}


def _model_api_key() -> str:
    return (os.getenv("GEMINI_API_KEY", "") or os.getenv("GOOGLE_API_KEY", "")).strip()


@dataclass(frozen=True)
class ScoringWeights:
    # 점수 가중치/임계값은 튜닝 값 (상대 순위만 의미 있음)
    reliability_factor: float = 50.0
    priority_high: float = 30.0
    priority_medium: float = 15.0
    priority_low: float = 0.0
    local_match: float = 40.0
    global_match: float = 25.0
    tech_match: float = 20.0
    recency_1h: float = 20.0
    recency_6h: float = 15.0
    recency_24h: float = 10.0
    length_long: float = 10.0
    length_medium: float = 5.0
    length_long_chars: int = 500
    length_medium_chars: int = 200
    safety_factor: float = 0.3


@dataclass(frozen=True)
class SentinelConfig:
    api_key: str = ""
    enabled: bool = True
    auto_persist: bool = False
    max_per_run: int = 3
    frequency_ms: int = 300000
    translate_enabled: bool = False
    secondary_locale: str = "km"
    min_quality_score: float = 30.0
    quality_threshold: float = 60.0  # autoPublishEligible 기준 (콘텐츠 품질 점수)
    max_age_hours: float = 48.0
    dedupe_window_hours: float = 12.0
    image_generation_enabled: bool = True
    og_image_enabled: bool = True
    sources_path: str = ""
    store_path: str = ""
    sources: tuple[Source, ...] = field(default_factory=tuple)

    @property
    def model_configured(self) -> bool:
        return bool(self.api_key)

    @property
    def enabled_sources(self) -> list[Source]:
        return [s for s in self.sources if s.enabled]


def _coerce_priority(value: Any, default: str = "medium") -> str:
    p = str(value or "").strip().lower()
    return p if p in SOURCE_PRIORITIES else default


def _coerce_reliability(value: Any, default: float = 0.5) -> float:
    try:
        r = float(value)
    except Exception:
        return default
    return max(0.0, min(1.0, r))


def _source_from_dict(raw: dict[str, Any]) -> Source | None:
    name = str(raw.get("name") or "").strip()
    url = str(raw.get("url") or raw.get("feed_url") or "").strip()
    if not name or not url:
        return None
    return Source(
        name=name,
        feed_url=url,
        reliability=_coerce_reliability(raw.get("reliability")),
        priority=_coerce_priority(raw.get("priority")),
        enabled=raw.get("enabled") is not False,
    )


def _load_override_file(path: str) -> list[dict[str, Any]]:
    if not path or not os.path.exists(path):
        return []
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except Exception as e:
        logger.warning("⚠️ source override load failed (%s): %s", path, e)
        return []
    entries = data.get("sources") if isinstance(data, dict) else data
    if not isinstance(entries, list):
        return []
    return [x for x in entries if isinstance(x, dict)]


def build_sources(
    base: list[dict[str, Any]],
    overrides: list[dict[str, Any]],
    enabled_names: list[str] | None = None,
) -> tuple[Source, ...]:
    """기본 소스 목록에 override(enabled/reliability/priority)를 병합."""
    merged: dict[str, dict[str, Any]] = {}
    order: list[str] = []
    for raw in base:
        key = str(raw.get("name") or "").strip().lower()
        if not key:
            continue
        merged[key] = dict(raw)
        order.append(key)

    for raw in overrides:
        key = str(raw.get("name") or "").strip().lower()
        if not key:
            continue
        if key in merged:
            for field_name in ("url", "enabled", "reliability", "priority"):
                if field_name in raw:
                    merged[key][field_name] = raw[field_name]
        elif raw.get("url"):
            # 기본 목록에 없는 소스는 URL이 있을 때만 추가
            merged[key] = dict(raw)
            order.append(key)

    allow = {n.lower() for n in (enabled_names or [])}
    sources: list[Source] = []
    for key in order:
        raw = merged[key]
        if allow:
            raw = {**raw, "enabled": key in allow}
        source = _source_from_dict(raw)
        if source is not None:
            sources.append(source)
    return tuple(sources)


def load_sentinel_config() -> SentinelConfig:
    """환경변수 + source override 파일에서 설정을 읽는다 (매 사이클 재호출)."""
    sources_path = os.getenv("SENTINEL_SOURCES_PATH", str(DATA_DIR / "sentinel_sources.json"))
    store_path = os.getenv("SENTINEL_STORE_PATH", str(DATA_DIR / "sentinel_store.json"))
    sources = build_sources(
        DEFAULT_SOURCES,
        _load_override_file(sources_path),
        _parse_csv_env("SENTINEL_ENABLED_SOURCES"),
    )
    return SentinelConfig(
        api_key=_model_api_key(),
        enabled=_env_bool("SENTINEL_ENABLED", True),
        auto_persist=_env_bool("SENTINEL_AUTO_PERSIST", False),
        max_per_run=max(1, _env_int("SENTINEL_MAX_PER_RUN", 3)),
        frequency_ms=max(1000, _env_int("SENTINEL_FREQUENCY_MS", 300000)),
        translate_enabled=_env_bool("SENTINEL_TRANSLATE_ENABLED", False),
        secondary_locale=os.getenv("SENTINEL_SECONDARY_LOCALE", "km").strip() or "km",
        min_quality_score=_env_float("SENTINEL_MIN_QUALITY_SCORE", 30.0),
        quality_threshold=max(0.0, min(100.0, _env_float("SENTINEL_QUALITY_THRESHOLD", 60.0))),
        max_age_hours=_env_float("SENTINEL_MAX_AGE_HOURS", 48.0),
        dedupe_window_hours=_env_float("SENTINEL_DEDUPE_WINDOW_HOURS", 12.0),
        image_generation_enabled=_env_bool("SENTINEL_IMAGE_GENERATION_ENABLED", True),
        og_image_enabled=_env_bool("SENTINEL_OG_IMAGE_ENABLED", True),
        sources_path=sources_path,
        store_path=store_path,
        sources=sources,
    )


# ==========================================
# 모델 / 외부 연동 설정
# ==========================================

GEMINI_API_BASE = os.getenv("GEMINI_API_BASE", "https://generativelanguage.googleapis.com/v1beta")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.0-flash")
GEMINI_IMAGE_MODEL = os.getenv("GEMINI_IMAGE_MODEL", "gemini-2.0-flash-preview-image-generation")
GEMINI_TIMEOUT_SEC = _env_int("GEMINI_TIMEOUT_SEC", 60)
GEMINI_MAX_RETRIES = _env_int("GEMINI_MAX_RETRIES", 2)
GEMINI_RETRY_BACKOFF_SEC = _env_float("GEMINI_RETRY_BACKOFF_SEC", 1.5)
GEMINI_MAX_OUTPUT_TOKENS = _env_int("GEMINI_MAX_OUTPUT_TOKENS", 4096)

CLOUDINARY_CLOUD_NAME = os.getenv("CLOUDINARY_CLOUD_NAME", "").strip()
CLOUDINARY_UPLOAD_PRESET = os.getenv("CLOUDINARY_UPLOAD_PRESET", "").strip()
CLOUDINARY_FOLDER = os.getenv("CLOUDINARY_FOLDER", "news/sentinel")
IMAGE_UPLOAD_TIMEOUT_SEC = _env_int("IMAGE_UPLOAD_TIMEOUT_SEC", 30)
PAGE_FETCH_TIMEOUT_SEC = _env_int("PAGE_FETCH_TIMEOUT_SEC", 10)
