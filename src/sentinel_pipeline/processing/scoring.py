from __future__ import annotations

import datetime
import re
from typing import Callable, Iterable

from sentinel_pipeline.core.config import ScoringWeights
from sentinel_pipeline.core.constants import PRIORITY_RANK
from sentinel_pipeline.models import RawItem, SafetyResult, ScoredItem, Source
from sentinel_pipeline.processing.safety import SafetyFilter

def _keyword_patterns(keywords: Iterable[str]) -> list[re.Pattern[str]]:
    return [
        re.compile(rf"(?<!\w){re.escape(kw.lower())}(?!\w)", re.IGNORECASE)
        for kw in keywords
        if kw and kw.strip()
    ]


class QualityScorer:
    def __init__(
        self,
        *,
        local_keywords: Iterable[str],
        global_keywords: Iterable[str],
        tech_keywords: Iterable[str],
        min_score: float = 30.0,
        max_age_hours: float = 48.0,
        weights: ScoringWeights | None = None,
        now_provider: Callable[[], datetime.datetime] | None = None,
    ) -> None:
        self._local = _keyword_patterns(local_keywords)
        self._global = _keyword_patterns(global_keywords)
        self._tech = _keyword_patterns(tech_keywords)
        self._min_score = min_score
        self._max_age_hours = max_age_hours
        self._weights = weights or ScoringWeights()
        self._now_provider = now_provider or (
            lambda: datetime.datetime.now(datetime.timezone.utc)
        )

    @property
    def min_score(self) -> float:
        return self._min_score

    @staticmethod
    def _any_match(patterns: list[re.Pattern[str]], text: str) -> bool:
        return any(p.search(text) for p in patterns)

    def item_text(self, item: RawItem) -> str:
        return f"{item.title} {item.summary} {item.body_snippet}"

    def is_local(self, item: RawItem) -> bool:
        return self._any_match(self._local, self.item_text(item))

    def age_hours(self, item: RawItem, now: datetime.datetime | None = None) -> float:
        # 발행일이 없으면 "방금" 발행된 것으로 간주
        if item.published_at is None:
            return 0.0
        now = now or self._now_provider()
        return max(0.0, (now - item.published_at).total_seconds() / 3600.0)

    def is_fresh(self, item: RawItem, now: datetime.datetime | None = None) -> bool:
        return self.age_hours(item, now) <= self._max_age_hours

    def reliability_points(self, reliability: float) -> float:
        return max(0.0, min(1.0, reliability)) * self._weights.reliability_factor

    def priority_points(self, priority: str) -> float:
        w = self._weights
        return {"high": w.priority_high, "medium": w.priority_medium, "low": w.priority_low}.get(priority, 0.0)

    def topical_points(self, text: str) -> float:
        # 지역/국제/테크 가점은 서로 배타적이지 않고 합산
        w = self._weights
        points = 0.0
        if self._any_match(self._local, text):
            points += w.local_match
        if self._any_match(self._global, text):
            points += w.global_match
        if self._any_match(self._tech, text):
            points += w.tech_match
        return points

    def recency_points(self, age_hours: float) -> float:
        w = self._weights
        if age_hours < 1:
            return w.recency_1h
        if age_hours < 6:
            return w.recency_6h
        if age_hours < 24:
            return w.recency_24h
        return 0.0

    def length_points(self, item: RawItem) -> float:
        w = self._weights
        n = len(item.body_snippet or item.summary or "")
        if n >= w.length_long_chars:
            return w.length_long
        if n >= w.length_medium_chars:
            return w.length_medium
        return 0.0

    def score_item(
        self,
        item: RawItem,
        source: Source | None,
        safety: SafetyResult,
        now: datetime.datetime | None = None,
    ) -> float:
        reliability = source.reliability if source else item.source_reliability
        priority = source.priority if source else item.source_priority
        return (
            self.reliability_points(reliability)
            + self.priority_points(priority)
            + self.topical_points(self.item_text(item))
            + self.recency_points(self.age_hours(item, now))
            + self.length_points(item)
            + safety.score * self._weights.safety_factor
        )

    def passes(self, scored: ScoredItem) -> bool:
        return scored.safety.is_safe and scored.quality_score >= self._min_score

    def sort_key(self, scored: ScoredItem, now: datetime.datetime | None = None) -> tuple:
        # 발행일이 없으면 age_hours와 같이 "방금" 발행으로 본다
        published = scored.item.published_at or now or self._now_provider()
        return (
            -scored.quality_score,
            0 if scored.is_local else 1,
            PRIORITY_RANK.get(scored.item.source_priority, len(PRIORITY_RANK)),
            -published.timestamp(),
            scored.item.guid,
        )

    def rank(
        self,
        items: list[RawItem],
        sources: dict[str, Source],
        safety_filter: SafetyFilter,
    ) -> list[ScoredItem]:
        """48시간 창 밖 항목 제외 → 점수 계산 → 임계값/안전성 필터 → 정렬."""
        now = self._now_provider()
        ranked: list[ScoredItem] = []
        for item in items:
            if not self.is_fresh(item, now):
                continue
            safety = safety_filter.check(item.title, item.summary, item.body_snippet)
            scored = ScoredItem(
                item=item,
                quality_score=self.score_item(item, sources.get(item.source_name), safety, now),
                safety=safety,
                is_local=self.is_local(item),
            )
            if self.passes(scored):
                ranked.append(scored)
        ranked.sort(key=lambda s: self.sort_key(s, now))
        return ranked
