from __future__ import annotations

import json
from typing import Any, Optional

from sentinel_pipeline.core.constants import (
    CATEGORY_ALIASES,
    CATEGORY_CHOICES,
    MAX_TAGS,
    PRIMARY_LOCALE,
    TRANSLATE_MAX_CHARS,
)
from sentinel_pipeline.core.errors import CooldownActiveError, ModelError, RateLimitError
from sentinel_pipeline.models import Draft, EnhancedContent, GenerationResult, RawItem, SafetyResult
from sentinel_pipeline.models.article import (
    COOLDOWN,
    DUPLICATE,
    FAILED,
    GENERATED,
    INVALID,
    RATE_LIMITED,
    UNSAFE,
)
from sentinel_pipeline.processing.cooldown import CooldownGate
from sentinel_pipeline.processing.dedupe import Deduplicator
from sentinel_pipeline.processing.formatting import (
    analyze_content_quality,
    extract_content_info,
    format_article_content,
    quality_keywords,
    quality_tags,
)
from sentinel_pipeline.processing.images import ImageService
from sentinel_pipeline.processing.llm_client import extract_json
from sentinel_pipeline.processing.prompts import (
    build_draft_prompt,
    build_image_description_prompt,
    build_image_generation_prompt,
    build_normalize_prompt,
    build_translate_prompt,
)
from sentinel_pipeline.processing.safety import SafetyFilter
from sentinel_pipeline.processing.types import LogFunc, ModelClient, NowFunc, null_log, utc_now
from sentinel_pipeline.utils import is_mostly_non_latin, sanitize_text, to_iso, truncate

REQUIRED_FIELDS = ("title", "description", "body")
_SENTIMENTS = {"positive", "neutral", "negative"}
_IMPACT_LEVELS = {"low", "medium", "high"}


def normalize_category(value: Any) -> str:
    key = str(value or "").strip().lower()
    key = CATEGORY_ALIASES.get(key, key)
    return key if key in CATEGORY_CHOICES else "other"


def normalize_tags(value: Any, limit: int = MAX_TAGS) -> list[str]:
    # 리스트 또는 콤마 문자열 모두 허용, '#' 제거 + 소문자 + 중복 제거
    raw = value.split(",") if isinstance(value, str) else (value or [])
    tags: list[str] = []
    for tag in raw:
        t = str(tag or "").strip().lstrip("#").strip().lower()
        if t and t not in tags:
            tags.append(t)
    return tags[:limit]


def _as_float(value: Any, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _as_str_list(value: Any) -> list[str]:
    if isinstance(value, str):
        return [value.strip()] if value.strip() else []
    if not isinstance(value, list):
        return []
    return [str(x).strip() for x in value if str(x or "").strip()]


def validate_enhanced(obj: dict[str, Any]) -> tuple[Optional[EnhancedContent], str]:
    """모델 JSON → EnhancedContent. 필수 필드가 비면 (None, 이유)."""
    missing = [k for k in REQUIRED_FIELDS if not str(obj.get(k) or "").strip()]
    if missing:
        return None, f"missing fields: {', '.join(missing)}"
    sentiment = str(obj.get("sentiment") or "neutral").lower()
    impact = str(obj.get("impact_level") or "medium").lower()
    return (
        EnhancedContent(
            title=str(obj["title"]).strip(),
            description=str(obj["description"]).strip(),
            body=str(obj["body"]).strip(),
            key_insights=_as_str_list(obj.get("key_insights")),
            sentiment=sentiment if sentiment in _SENTIMENTS else "neutral",
            impact_level=impact if impact in _IMPACT_LEVELS else "medium",
            relevance_score=max(0.0, min(100.0, _as_float(obj.get("relevance_score")))),
            suggested_tags=normalize_tags(obj.get("suggested_tags")),
            suggested_category=normalize_category(obj.get("suggested_category")),
            is_breaking=obj.get("is_breaking") is True,
            is_featured=obj.get("is_featured") is True,
            meta_description=str(obj.get("meta_description") or "").strip(),
            keywords=str(obj.get("keywords") or "").strip(),
        ),
        "",
    )


class GenerationOrchestrator:
    """항목 하나를 Draft로 만드는 선형 단계 머신 (조기 종료).

    안전성 → 중복 → 분석/강화 → [영어 정규화] → 검증 → 사후 안전성 →
    포맷 → 번역 → 품질 분석 → 이미지 → Draft 조립.

    모든 모델 호출 직전에 CooldownGate를 확인한다. 분석 단계의 429는 항목을
    중단하고, 번역/이미지 같은 best-effort 단계의 429는 해당 단계만 포기한다.
    어떤 경우에도 예외를 밖으로 올리지 않고 GenerationResult로 보고한다.
    """

    def __init__(
        self,
        *,
        model: ModelClient,
        safety_filter: SafetyFilter,
        deduplicator: Deduplicator,
        cooldown: CooldownGate,
        image_service: Optional[ImageService] = None,
        logger: LogFunc = null_log,
        now_provider: NowFunc = utc_now,
        model_name: str = "",
        translate_enabled: bool = False,
        secondary_locale: str = "km",
        image_generation_enabled: bool = True,
        quality_threshold: float = 60.0,
    ) -> None:
        self._model = model
        self._safety = safety_filter
        self._dedupe = deduplicator
        self._cooldown = cooldown
        self._images = image_service
        self._log = logger
        self._now_provider = now_provider
        self._model_name = model_name
        self._translate_enabled = translate_enabled
        self._secondary_locale = secondary_locale
        self._image_generation_enabled = image_generation_enabled
        self._quality_threshold = quality_threshold
        self.model_calls = 0

    # ------------------------------------------------------------------
    # 모델 호출 게이트
    # ------------------------------------------------------------------
    def _enter_cooldown(self, err: RateLimitError, stage: str) -> None:
        delay = self._cooldown.trigger(err.retry_after)
        self._log("info", f"[Sentinel] {stage}: entering cooldown for {round(delay)}s due to quota")

    def _call_model(self, prompt: str, stage: str) -> str:
        if self._cooldown.is_active():
            raise CooldownActiveError(f"{stage}: cooldown active")
        self.model_calls += 1
        try:
            return self._model.generate_content(prompt)
        except RateLimitError as e:
            self._enter_cooldown(e, stage)
            raise

    def _call_image_model(self, prompt: str) -> Optional[bytes]:
        if self._cooldown.is_active():
            raise CooldownActiveError("image: cooldown active")
        self.model_calls += 1
        try:
            return self._model.generate_image(prompt)
        except RateLimitError as e:
            self._enter_cooldown(e, "image")
            raise

    def _best_effort(self, prompt: str, stage: str) -> Optional[str]:
        try:
            text = self._call_model(prompt, stage)
        except CooldownActiveError:
            return None
        except RateLimitError:
            return None
        except ModelError as e:
            self._log("warning", f"⚠️ [Sentinel] {stage} failed: {e}")
            return None
        text = (text or "").strip()
        return text or None

    # ------------------------------------------------------------------
    # 단계
    # ------------------------------------------------------------------
    def _analyze(self, item: RawItem) -> tuple[Optional[dict[str, Any]], str, str]:
        prompt = build_draft_prompt(
            source_name=item.source_name,
            title=sanitize_text(item.title),
            link=item.link,
            published=to_iso(item.published_at) or "",
            summary=sanitize_text(item.summary),
            body=sanitize_text(item.body_snippet),
        )
        try:
            text = self._call_model(prompt, "analyze")
        except CooldownActiveError:
            return None, COOLDOWN, "cooldown active"
        except RateLimitError as e:
            return None, RATE_LIMITED, str(e)
        except ModelError as e:
            return None, FAILED, str(e)
        obj, err = extract_json(text)
        if obj is None:
            return None, INVALID, err
        return obj, GENERATED, ""

    def _normalize_language(self, obj: dict[str, Any]) -> tuple[dict[str, Any], bool]:
        sample = " ".join(str(obj.get(k) or "") for k in REQUIRED_FIELDS)
        if not is_mostly_non_latin(sample):
            return obj, False
        payload = json.dumps({k: obj.get(k) for k in REQUIRED_FIELDS}, ensure_ascii=False)
        text = self._best_effort(build_normalize_prompt(payload), "normalize")
        if not text:
            return obj, False
        translated, err = extract_json(text)
        if translated is None:
            self._log("warning", f"⚠️ [Sentinel] normalize returned unusable JSON: {err}")
            return obj, False
        merged = dict(obj)
        for key in REQUIRED_FIELDS:
            if str(translated.get(key) or "").strip():
                merged[key] = translated[key]
        return merged, True

    def _format(self, body: str) -> str:
        try:
            return format_article_content(body) or body
        except Exception as e:
            self._log("warning", f"⚠️ [Sentinel] formatting failed, keeping plain body: {e}")
            return body

    def _translate(self, enhanced: EnhancedContent) -> dict[str, dict[str, str]]:
        # 필드별 독립 fallback: 실패한 필드는 primary 텍스트 유지
        locale = self._secondary_locale
        out: dict[str, dict[str, str]] = {"title": {}, "description": {}, "body": {}}
        if not self._translate_enabled or not locale or locale == PRIMARY_LOCALE:
            return out
        sources = {
            "title": enhanced.title,
            "description": enhanced.description,
            "body": truncate(enhanced.body, TRANSLATE_MAX_CHARS),
        }
        for key, text in sources.items():
            translated = self._best_effort(build_translate_prompt(text, locale), f"translate:{key}")
            out[key][locale] = translated or (enhanced.body if key == "body" else text)
        return out

    def _generate_image(self, enhanced: EnhancedContent) -> Optional[str]:
        if not self._image_generation_enabled or self._images is None:
            return None
        description = self._best_effort(
            build_image_description_prompt(enhanced.title, enhanced.body),
            "image description",
        )
        if not description:
            return None
        try:
            data = self._call_image_model(build_image_generation_prompt(description))
        except (CooldownActiveError, RateLimitError):
            return None
        except ModelError as e:
            self._log("warning", f"⚠️ [Sentinel] image generation failed: {e}")
            return None
        if not data:
            return None
        uploaded = self._images.upload(data)
        if not uploaded:
            self._log("warning", "⚠️ [Sentinel] generated image upload failed, dropping thumbnail")
        return uploaded

    def _thumbnail(self, item: RawItem, enhanced: EnhancedContent) -> tuple[Optional[str], Optional[str]]:
        if self._images is not None:
            url = self._images.resolve_source_thumbnail(item)
            if url:
                return url, "source"
        generated = self._generate_image(enhanced)
        return (generated, "generated") if generated else (None, None)

    # ------------------------------------------------------------------
    # 진입점
    # ------------------------------------------------------------------
    def generate(
        self,
        item: RawItem,
        *,
        quality_score: Optional[float] = None,
        check_duplicates: bool = True,
    ) -> GenerationResult:
        safety = self._safety.check(item.title, item.summary, item.body_snippet)
        if not safety.is_safe:
            self._log("warning", f"🛑 safety: rejected '{item.title}' flags={safety.sensitive_flags}")
            return GenerationResult(UNSAFE, reason=f"sensitive: {', '.join(safety.sensitive_flags)}")

        if check_duplicates:
            dup = self._dedupe.check(item.guid, item.title, item.summary)
            if dup.is_duplicate:
                self._log("info", f"[Sentinel] duplicate skipped '{item.title}' ({dup.reason})")
                return GenerationResult(DUPLICATE, reason=dup.reason)

        obj, status, reason = self._analyze(item)
        if obj is None:
            level = "info" if status in (COOLDOWN, RATE_LIMITED) else "warning"
            prefix = "[Sentinel]" if level == "info" else "⚠️ [Sentinel]"
            self._log(level, f"{prefix} analyze aborted for '{item.title}': {status} {reason}")
            return GenerationResult(status, reason=reason)

        obj, normalized = self._normalize_language(obj)

        enhanced, err = validate_enhanced(obj)
        if enhanced is None:
            self._log("warning", f"⚠️ [Sentinel] invalid draft for '{item.title}': {err}")
            return GenerationResult(INVALID, reason=err)

        post_safety = self._safety.check(enhanced.title, enhanced.description, enhanced.body)
        if not post_safety.is_safe:
            self._log(
                "warning",
                f"🛑 safety: generated text rejected '{enhanced.title}' flags={post_safety.sensitive_flags}",
            )
            return GenerationResult(UNSAFE, reason=f"post-generation sensitive: {', '.join(post_safety.sensitive_flags)}")

        formatted = self._format(enhanced.body)
        translations = self._translate(enhanced)
        quality = analyze_content_quality(
            enhanced.body,
            formatted_html=formatted,
            key_insights=enhanced.key_insights,
            relevance_score=enhanced.relevance_score,
            safety_score=post_safety.score,
        )
        thumbnail, image_source = self._thumbnail(item, enhanced)

        draft = self._assemble(
            item,
            enhanced,
            formatted=formatted,
            translations=translations,
            safety=post_safety,
            quality=quality,
            thumbnail=thumbnail,
            image_source=image_source,
            normalized=normalized,
            quality_score=quality_score,
            pre_safety=safety,
        )
        return GenerationResult(GENERATED, draft=draft)

    def _assemble(
        self,
        item: RawItem,
        enhanced: EnhancedContent,
        *,
        formatted: str,
        translations: dict[str, dict[str, str]],
        safety: SafetyResult,
        quality: dict[str, Any],
        thumbnail: Optional[str],
        image_source: Optional[str],
        normalized: bool,
        quality_score: Optional[float],
        pre_safety: SafetyResult,
    ) -> Draft:
        secondary = self._secondary_locale
        content = {PRIMARY_LOCALE: formatted, **translations["body"]}
        if secondary in translations["body"]:
            content[secondary] = self._format(translations["body"][secondary])
        meta = enhanced.meta_description or truncate(enhanced.description, 160)
        tags = list(enhanced.suggested_tags)
        for tag in quality_tags(quality):
            if tag not in tags:
                tags.append(tag)
        keywords = enhanced.keywords or ", ".join(enhanced.suggested_tags)
        extra = [k for k in quality_keywords(quality) if k not in keywords]
        if extra:
            keywords = ", ".join([keywords, *extra]) if keywords else ", ".join(extra)
        return Draft(
            source={
                "name": item.source_name,
                "url": item.link,
                "publishedAt": to_iso(item.published_at),
                "guid": item.guid,
            },
            category=enhanced.suggested_category,
            tags=tags,
            title={PRIMARY_LOCALE: enhanced.title, **translations["title"]},
            description={PRIMARY_LOCALE: enhanced.description, **translations["description"]},
            content=content,
            thumbnail_url=thumbnail,
            is_featured=enhanced.is_featured,
            is_breaking=enhanced.is_breaking,
            seo_meta={
                "metaDescription": {PRIMARY_LOCALE: meta},
                "keywords": keywords,
            },
            safety_score=min(pre_safety.score, safety.score),
            generation_metadata={
                "model": self._model_name,
                "generatedAt": to_iso(self._now_provider()),
                "qualityScore": quality_score,
                "contentQuality": quality,
                "autoPublishEligible": quality["score"] >= self._quality_threshold,
                "contentInfo": extract_content_info(enhanced.body),
                "keyInsights": list(enhanced.key_insights),
                "sentiment": enhanced.sentiment,
                "impactLevel": enhanced.impact_level,
                "relevanceScore": enhanced.relevance_score,
                "safety": safety.to_dict(),
                "normalizedToPrimary": normalized,
                "translatedLocales": sorted(translations["title"].keys()),
                "imageSource": image_source,
            },
        )
