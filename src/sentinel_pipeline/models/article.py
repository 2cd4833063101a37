from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass(frozen=True)
class Source:
    name: str
    feed_url: str
    reliability: float = 0.5
    priority: str = "medium"  # "low" | "medium" | "high"
    enabled: bool = True


@dataclass(frozen=True)
class RawItem:
    guid: str
    title: str
    summary: str
    body_snippet: str
    link: str
    published_at: Optional[datetime.datetime]
    source_name: str
    source_reliability: float
    source_priority: str
    image_url: Optional[str] = None


@dataclass(frozen=True)
class SafetyResult:
    is_safe: bool
    score: float
    sensitive_flags: list[str] = field(default_factory=list)
    bias_flags: list[str] = field(default_factory=list)

    @property
    def flags(self) -> list[str]:
        return [*self.sensitive_flags, *self.bias_flags]

    def to_dict(self) -> dict[str, Any]:
        return {
            "isSafe": self.is_safe,
            "score": self.score,
            "flags": self.flags,
            "sensitiveFlags": list(self.sensitive_flags),
            "biasFlags": list(self.bias_flags),
        }


@dataclass(frozen=True)
class ScoredItem:
    item: RawItem
    quality_score: float
    safety: SafetyResult
    is_local: bool = False

    # RawItem 필드 접근 편의
    @property
    def guid(self) -> str:
        return self.item.guid

    @property
    def title(self) -> str:
        return self.item.title

    @property
    def source_name(self) -> str:
        return self.item.source_name


@dataclass
class EnhancedContent:
    title: str
    description: str
    body: str
    key_insights: list[str] = field(default_factory=list)
    sentiment: str = "neutral"
    impact_level: str = "medium"
    relevance_score: float = 0.0
    suggested_tags: list[str] = field(default_factory=list)
    suggested_category: str = "other"
    is_breaking: bool = False
    is_featured: bool = False
    meta_description: str = ""
    keywords: str = ""


@dataclass
class Draft:
    source: dict[str, Any]
    category: str
    tags: list[str]
    title: dict[str, str]
    description: dict[str, str]
    content: dict[str, str]
    thumbnail_url: Optional[str] = None
    is_featured: bool = False
    is_breaking: bool = False
    seo_meta: dict[str, Any] = field(default_factory=dict)
    safety_score: float = 100.0
    generation_metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        # 모델과 주고받는 draft JSON 형태 (키 이름 고정)
        return {
            "source": dict(self.source),
            "category": self.category,
            "tags": list(self.tags),
            "title": dict(self.title),
            "description": dict(self.description),
            "content": dict(self.content),
            "thumbnailUrl": self.thumbnail_url,
            "isFeatured": self.is_featured,
            "isBreaking": self.is_breaking,
            "seo": dict(self.seo_meta),
            "safetyScore": self.safety_score,
            "generationMetadata": dict(self.generation_metadata),
        }


@dataclass(frozen=True)
class DuplicateCheck:
    is_duplicate: bool
    reason: str = ""
    matched_id: Optional[str] = None


@dataclass(frozen=True)
class PersistResult:
    created: bool
    article_id: Optional[str] = None
    reason: str = ""
    document: Optional[dict[str, Any]] = None


GENERATED = "generated"
UNSAFE = "unsafe"
DUPLICATE = "duplicate"
COOLDOWN = "cooldown"
RATE_LIMITED = "rate_limited"
INVALID = "invalid"
FAILED = "failed"

SKIP_STATUSES = frozenset({UNSAFE, DUPLICATE, COOLDOWN, RATE_LIMITED})

# 콘텐츠 품질 등급 (높은 순)
QUALITY_BANDS = ("excellent", "good", "acceptable", "poor", "unacceptable")


@dataclass(frozen=True)
class GenerationResult:
    status: str
    draft: Optional[Draft] = None
    reason: str = ""

    @property
    def ok(self) -> bool:
        return self.status == GENERATED and self.draft is not None


@dataclass
class RunSummary:
    processed: int = 0
    created: int = 0
    skipped: int = 0
    errors: int = 0
    fetched: int = 0
    candidates: int = 0
    persist: bool = False
    previews: list[dict[str, Any]] = field(default_factory=list)
    timings: dict[str, float] = field(default_factory=dict)
    started_at: Optional[str] = None
    finished_at: Optional[str] = None
    quality_scores: list[float] = field(default_factory=list)
    quality_distribution: dict[str, int] = field(
        default_factory=lambda: {grade: 0 for grade in QUALITY_BANDS}
    )

    def record_quality(self, score: float, grade: str) -> None:
        self.quality_scores.append(float(score))
        self.quality_distribution[grade] = self.quality_distribution.get(grade, 0) + 1

    def quality_stats(self) -> dict[str, Any]:
        scores = self.quality_scores
        return {
            "scored": len(scores),
            "averageScore": round(sum(scores) / len(scores), 1) if scores else 0.0,
            "highQuality": sum(1 for s in scores if s >= 80),
            "mediumQuality": sum(1 for s in scores if 60 <= s < 80),
            "lowQuality": sum(1 for s in scores if s < 60),
            "qualityDistribution": dict(self.quality_distribution),
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "processed": self.processed,
            "created": self.created,
            "skipped": self.skipped,
            "errors": self.errors,
            "fetched": self.fetched,
            "candidates": self.candidates,
            "persist": self.persist,
            "previews": list(self.previews),
            "timings": dict(self.timings),
            "startedAt": self.started_at,
            "finishedAt": self.finished_at,
            "qualityStats": self.quality_stats(),
        }
