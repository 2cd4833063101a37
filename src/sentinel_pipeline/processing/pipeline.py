from __future__ import annotations

import datetime
import threading
import time
from typing import Any, Callable, Optional
from urllib.parse import urlparse

from sentinel_pipeline.core import config as cfg
from sentinel_pipeline.core.config import SentinelConfig, ScoringWeights, load_sentinel_config
from sentinel_pipeline.core.constants import (
    BIAS_INDICATORS,
    GLOBAL_BREAKING_KEYWORDS,
    LOCAL_REGION_KEYWORDS,
    SENSITIVE_KEYWORDS,
    TECH_KEYWORDS,
)
from sentinel_pipeline.core.errors import ConfigurationError
from sentinel_pipeline.models import Draft, RawItem, RunSummary
from sentinel_pipeline.models.article import DUPLICATE, QUALITY_BANDS, SKIP_STATUSES, UNSAFE
from sentinel_pipeline.processing.cooldown import CooldownGate
from sentinel_pipeline.processing.dedupe import Deduplicator
from sentinel_pipeline.processing.generation import GenerationOrchestrator
from sentinel_pipeline.processing.images import ImageService, build_default_uploader
from sentinel_pipeline.processing.llm_client import GeminiClient
from sentinel_pipeline.processing.log_buffer import SentinelLog
from sentinel_pipeline.processing.persistence import DUPLICATE_REASONS, PersistenceGuard
from sentinel_pipeline.processing.safety import SafetyFilter
from sentinel_pipeline.processing.scoring import QualityScorer
from sentinel_pipeline.processing.types import (
    DocumentStore,
    ImageUploader,
    ModelClient,
    NowFunc,
    utc_now,
)
from sentinel_pipeline.scrapers.feed_fetcher import FeedFetcher
from sentinel_pipeline.scrapers.feed_fetcher_config import FeedFetcherConfig
from sentinel_pipeline.scrapers.page_utils import (
    extract_main_text,
    extract_og_image,
    extract_page_description,
    extract_page_title,
    fetch_page_html,
)
from sentinel_pipeline.store import JsonDocumentStore
from sentinel_pipeline.utils import to_iso, truncate

CreatedHook = Callable[[dict[str, Any]], None]
ModelFactory = Callable[[SentinelConfig], ModelClient]
STAGE_KEYS = ("fetch_ms", "score_ms", "generate_ms", "total_ms")


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000.0, 1)


def _default_model_factory(config: SentinelConfig) -> ModelClient:
    return GeminiClient(api_key=config.api_key)


def _default_page_fetcher(url: str) -> str:
    return fetch_page_html(url, cfg.PAGE_FETCH_TIMEOUT_SEC)


def build_default_safety_filter() -> SafetyFilter:
    return SafetyFilter(
        sensitive_keywords=SENSITIVE_KEYWORDS,
        bias_indicators=BIAS_INDICATORS,
    )


def build_default_scorer(
    config: SentinelConfig,
    *,
    now_provider: NowFunc = utc_now,
    weights: ScoringWeights | None = None,
) -> QualityScorer:
    return QualityScorer(
        local_keywords=LOCAL_REGION_KEYWORDS,
        global_keywords=GLOBAL_BREAKING_KEYWORDS,
        tech_keywords=TECH_KEYWORDS,
        min_score=config.min_quality_score,
        max_age_hours=config.max_age_hours,
        weights=weights,
        now_provider=now_provider,
    )


def draft_preview(draft: Draft) -> dict[str, Any]:
    quality = draft.generation_metadata.get("contentQuality") or {}
    return {
        "title": draft.title.get("en"),
        "category": draft.category,
        "tags": list(draft.tags),
        "description": truncate(draft.description.get("en", ""), 200),
        "thumbnailUrl": draft.thumbnail_url,
        "guid": draft.source.get("guid"),
        "qualityGrade": quality.get("grade"),
        "autoPublishEligible": bool(draft.generation_metadata.get("autoPublishEligible")),
    }


class SentinelScheduler:
    """주기 실행 + 수동 실행 진입점.

    사이클: 수집 → 안전성/점수 필터 → 상위 N건 → 생성 → 저장(또는 미리보기).
    설정은 사이클마다 다시 읽고, cooldown/해시 캐시/guid 캐시는 사이클 간 유지한다.
    run_once와 import_url은 run lock으로 직렬화된다.
    """

    def __init__(
        self,
        *,
        store: DocumentStore,
        model: Optional[ModelClient] = None,
        model_factory: ModelFactory = _default_model_factory,
        config_loader: Callable[[], SentinelConfig] = load_sentinel_config,
        fetcher: Optional[FeedFetcher] = None,
        uploader: Optional[ImageUploader] = None,
        page_fetcher: Callable[[str], str] = _default_page_fetcher,
        sentinel_log: Optional[SentinelLog] = None,
        now_provider: NowFunc = utc_now,
    ) -> None:
        self._store = store
        self._model = model
        self._model_factory = model_factory
        self._config_loader = config_loader
        self.log_buffer = sentinel_log or SentinelLog(now_provider=now_provider)
        self._log = self.log_buffer.log
        self._now_provider = now_provider
        self._fetcher = fetcher or FeedFetcher(config=FeedFetcherConfig.from_env(), logger=self._log)
        self._uploader = uploader or build_default_uploader()
        self._page_fetcher = page_fetcher
        self._safety = build_default_safety_filter()
        self._cooldown = CooldownGate(now_provider=now_provider)
        self._guard = PersistenceGuard(store=store, logger=self._log, now_provider=now_provider)

        self._config = self._config_loader()
        self._dedupe = Deduplicator(
            store=store,
            window_hours=self._config.dedupe_window_hours,
            now_provider=now_provider,
            logger=self._log,
        )

        self._run_lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._stop_event: Optional[threading.Event] = None
        self._thread: Optional[threading.Thread] = None
        self._running = False
        self._hooks: list[CreatedHook] = []

        self._cycles = 0
        self._totals = {"processed": 0, "created": 0, "skipped": 0, "errors": 0}
        self._stage_totals = {k: 0.0 for k in STAGE_KEYS}
        self._quality_score_sum = 0.0
        self._quality_scored = 0
        self._quality_distribution = {grade: 0 for grade in QUALITY_BANDS}
        self._last_summary: Optional[RunSummary] = None
        self._last_run_at: Optional[datetime.datetime] = None
        self._next_run_at: Optional[datetime.datetime] = None

    # ------------------------------------------------------------------
    # 구성 요소
    # ------------------------------------------------------------------
    @property
    def cooldown(self) -> CooldownGate:
        return self._cooldown

    @property
    def deduplicator(self) -> Deduplicator:
        return self._dedupe

    @property
    def fetcher(self) -> FeedFetcher:
        return self._fetcher

    @property
    def running(self) -> bool:
        return self._running

    def on_article_created(self, hook: CreatedHook) -> None:
        self._hooks.append(hook)

    def _ensure_model(self, config: SentinelConfig) -> Optional[ModelClient]:
        if self._model is None and config.model_configured:
            self._model = self._model_factory(config)
        return self._model

    def _build_orchestrator(self, config: SentinelConfig, model: ModelClient) -> GenerationOrchestrator:
        images = ImageService(
            uploader=self._uploader,
            page_fetcher=self._page_fetcher,
            og_image_enabled=config.og_image_enabled,
            logger=self._log,
        )
        return GenerationOrchestrator(
            model=model,
            safety_filter=self._safety,
            deduplicator=self._dedupe,
            cooldown=self._cooldown,
            image_service=images,
            logger=self._log,
            now_provider=self._now_provider,
            model_name=getattr(model, "model", "") or cfg.GEMINI_MODEL,
            translate_enabled=config.translate_enabled,
            secondary_locale=config.secondary_locale,
            image_generation_enabled=config.image_generation_enabled,
            quality_threshold=config.quality_threshold,
        )

    def _load_config(self) -> SentinelConfig:
        try:
            config = self._config_loader()
        except Exception as e:
            self._log("error", f"❌ [Sentinel] config reload failed, keeping previous: {e}")
            return self._config
        self._config = config
        return config

    # ------------------------------------------------------------------
    # 수명 주기
    # ------------------------------------------------------------------
    def start(self) -> bool:
        config = self._load_config()
        if not config.enabled:
            self._log("info", "[Sentinel] disabled by configuration; not starting")
            return False
        if self._model is None and not config.model_configured:
            raise ConfigurationError("GEMINI_API_KEY (or GOOGLE_API_KEY) is required to start Sentinel")

        self.stop()
        interval_sec = config.frequency_ms / 1000.0
        stop_event = threading.Event()
        thread = threading.Thread(
            target=self._loop,
            args=(stop_event, interval_sec),
            name="sentinel-scheduler",
            daemon=True,
        )
        with self._state_lock:
            self._stop_event = stop_event
            self._thread = thread
            self._running = True
        thread.start()
        self._log("info", f"[Sentinel] started; interval {round(interval_sec)}s, {len(config.enabled_sources)} sources")
        return True

    def stop(self) -> bool:
        # 타이머만 취소, 진행 중인 사이클은 끝까지 수행
        with self._state_lock:
            event, was_running = self._stop_event, self._running
            self._stop_event = None
            self._thread = None
            self._running = False
            self._next_run_at = None
        if event is not None:
            event.set()
        if was_running:
            self._log("info", "[Sentinel] stopped")
        return was_running

    def _loop(self, stop_event: threading.Event, interval_sec: float) -> None:
        while not stop_event.is_set():
            try:
                self.run_once()
            except Exception as e:
                self._log("error", f"❌ [Sentinel] cycle crashed: {e}")
            with self._state_lock:
                if self._stop_event is stop_event:
                    self._next_run_at = self._now_provider() + datetime.timedelta(seconds=interval_sec)
            if stop_event.wait(interval_sec):
                break

    # ------------------------------------------------------------------
    # 사이클
    # ------------------------------------------------------------------
    def _mark_terminal(self, item: RawItem) -> None:
        self._dedupe.remember(item.title, item.summary)
        self._fetcher.mark_seen(item.guid)

    def _notify_created(self, document: dict[str, Any]) -> None:
        for hook in list(self._hooks):
            try:
                hook(document)
            except Exception as e:
                self._log("warning", f"⚠️ [Sentinel] post-create hook failed: {e}")

    def _process_item(
        self,
        orchestrator: GenerationOrchestrator,
        item: RawItem,
        *,
        persist: bool,
        summary: RunSummary,
        quality_score: Optional[float] = None,
    ) -> None:
        try:
            result = orchestrator.generate(item, quality_score=quality_score)
        except Exception as e:
            summary.errors += 1
            self._log("error", f"❌ [Sentinel] generation crashed for '{item.title}': {e}")
            return

        if not result.ok:
            if result.status in SKIP_STATUSES:
                summary.skipped += 1
            else:
                summary.errors += 1
            # 안전성 거절/중복은 다시 시도하지 않는다
            if result.status in (UNSAFE, DUPLICATE):
                self._fetcher.mark_seen(item.guid)
            return

        draft = result.draft
        content_quality = draft.generation_metadata.get("contentQuality") or {}
        if "score" in content_quality:
            summary.record_quality(content_quality["score"], content_quality.get("grade", "unacceptable"))
        if not persist:
            summary.previews.append(draft_preview(draft))
            return

        outcome = self._guard.persist(draft, item)
        if outcome.created:
            summary.created += 1
            self._mark_terminal(item)
            self._notify_created(outcome.document or {})
        elif outcome.reason in DUPLICATE_REASONS:
            summary.skipped += 1
            self._mark_terminal(item)
        else:
            summary.errors += 1

    def run_once(self, persist: Optional[bool] = None) -> RunSummary:
        with self._run_lock:
            config = self._load_config()
            do_persist = config.auto_persist if persist is None else bool(persist)
            summary = RunSummary(persist=do_persist, started_at=to_iso(self._now_provider()))
            total_start = time.perf_counter()

            model = self._ensure_model(config)
            if model is None:
                self._log("error", "❌ [Sentinel] model not configured; cycle skipped")
                summary.errors += 1
                return self._finish(summary, total_start)

            t = time.perf_counter()
            items = self._fetcher.fetch_all(config.enabled_sources)
            summary.fetched = len(items)
            summary.timings["fetch_ms"] = _elapsed_ms(t)

            t = time.perf_counter()
            scorer = build_default_scorer(config, now_provider=self._now_provider)
            sources = {s.name: s for s in config.sources}
            ranked = scorer.rank(items, sources, self._safety)
            summary.candidates = len(ranked)
            summary.timings["score_ms"] = _elapsed_ms(t)

            t = time.perf_counter()
            orchestrator = self._build_orchestrator(config, model)
            for scored in ranked[: config.max_per_run]:
                summary.processed += 1
                self._process_item(
                    orchestrator,
                    scored.item,
                    persist=do_persist,
                    summary=summary,
                    quality_score=scored.quality_score,
                )
            summary.timings["generate_ms"] = _elapsed_ms(t)

            self._log(
                "info",
                f"[Sentinel] cycle done: fetched={summary.fetched} candidates={summary.candidates} "
                f"processed={summary.processed} created={summary.created} "
                f"skipped={summary.skipped} errors={summary.errors}"
                f" avgQuality={summary.quality_stats()['averageScore']}",
            )
            return self._finish(summary, total_start)

    def _finish(self, summary: RunSummary, total_start: float) -> RunSummary:
        summary.timings["total_ms"] = _elapsed_ms(total_start)
        summary.finished_at = to_iso(self._now_provider())
        with self._state_lock:
            self._cycles += 1
            for key in self._totals:
                self._totals[key] += getattr(summary, key)
            for key in STAGE_KEYS:
                self._stage_totals[key] += summary.timings.get(key, 0.0)
            self._quality_score_sum += sum(summary.quality_scores)
            self._quality_scored += len(summary.quality_scores)
            for grade, count in summary.quality_distribution.items():
                self._quality_distribution[grade] = self._quality_distribution.get(grade, 0) + count
            self._last_summary = summary
            self._last_run_at = self._now_provider()
        return summary

    # ------------------------------------------------------------------
    # 수동 import
    # ------------------------------------------------------------------
    def _pick_feed_item(self, items: list[RawItem], url: str) -> Optional[RawItem]:
        if not items:
            return None
        for item in items:
            if item.link == url or item.guid == url:
                return item
        epoch = datetime.datetime(1970, 1, 1, tzinfo=datetime.timezone.utc)
        return max(items, key=lambda x: x.published_at or epoch)

    def _page_item(self, url: str) -> Optional[RawItem]:
        try:
            html = self._page_fetcher(url)
        except Exception as e:
            self._log("warning", f"⚠️ [Sentinel] import page fetch failed ({url}): {e}")
            return None
        title = extract_page_title(html)
        text = extract_main_text(url, html)
        if not title or not text:
            return None
        description = extract_page_description(html)
        return RawItem(
            guid=url,
            title=title,
            summary=description or truncate(text, 300),
            body_snippet=truncate(text, 4000),
            link=url,
            published_at=self._now_provider(),
            source_name=urlparse(url).netloc or "Manual Import",
            source_reliability=0.5,
            source_priority="medium",
            image_url=extract_og_image(html, url) or None,
        )

    def import_url(self, url: str, persist: Optional[bool] = None) -> dict[str, Any]:
        """스케줄러를 거치지 않고 URL 하나를 생성/저장한다."""
        with self._run_lock:
            config = self._load_config()
            do_persist = config.auto_persist if persist is None else bool(persist)
            model = self._ensure_model(config)
            if model is None:
                return {"success": False, "message": "Model not configured"}

            item = self._pick_feed_item(self._fetcher.fetch_single(url), url)
            if item is None:
                item = self._page_item(url)
            if item is None:
                return {"success": False, "message": "No importable content found"}

            orchestrator = self._build_orchestrator(config, model)
            try:
                result = orchestrator.generate(item)
            except Exception as e:
                self._log("error", f"❌ [Sentinel] import generation crashed: {e}")
                return {"success": False, "message": f"Generation failed: {e}"}
            if not result.ok:
                return {"success": False, "message": f"Generation {result.status}: {result.reason}"}

            if not do_persist:
                return {"success": True, "preview": result.draft.to_dict(), "message": "Preview generated"}

            outcome = self._guard.persist(result.draft, item)
            if outcome.created:
                self._mark_terminal(item)
                self._notify_created(outcome.document or {})
                return {"success": True, "created": True, "articleId": outcome.article_id, "message": "Draft created"}
            if outcome.reason in DUPLICATE_REASONS:
                self._mark_terminal(item)
            return {"success": outcome.reason in DUPLICATE_REASONS, "created": False, "message": outcome.reason}

    # ------------------------------------------------------------------
    # 상태
    # ------------------------------------------------------------------
    def get_performance_metrics(self) -> dict[str, Any]:
        with self._state_lock:
            cycles = self._cycles
            totals = dict(self._totals)
            stage_totals = dict(self._stage_totals)
            quality_sum = self._quality_score_sum
            quality_scored = self._quality_scored
            quality_distribution = dict(self._quality_distribution)
            last = self._last_summary
            last_run_at = self._last_run_at
            next_run_at = self._next_run_at
        processed = totals["processed"]
        return {
            "cyclesRun": cycles,
            "totalProcessed": processed,
            "totalCreated": totals["created"],
            "totalSkipped": totals["skipped"],
            "totalErrors": totals["errors"],
            "successRate": round(totals["created"] / processed * 100.0, 1) if processed else 0.0,
            "averageCycleMs": round(stage_totals["total_ms"] / cycles, 1) if cycles else 0.0,
            "lastCycleMs": last.timings.get("total_ms", 0.0) if last else 0.0,
            "averageStageMs": {
                k: round(v / cycles, 1) if cycles else 0.0 for k, v in stage_totals.items()
            },
            "lastRunAt": to_iso(last_run_at),
            "nextRunAt": to_iso(next_run_at),
            "cooldownHits": self._cooldown.trigger_count,
            "qualityStats": {
                "scored": quality_scored,
                "averageScore": round(quality_sum / quality_scored, 1) if quality_scored else 0.0,
                "qualityDistribution": quality_distribution,
            },
        }

    def get_health_status(self) -> dict[str, Any]:
        config = self._config
        model_configured = self._model is not None or config.model_configured
        cooldown_active = self._cooldown.is_active()
        last_error = self.log_buffer.last_error
        last = self._last_summary
        if not self._running:
            status = "stopped"
        elif (
            cooldown_active
            or not model_configured
            or (last is not None and last.errors > 0 and last.created == 0)
        ):
            status = "degraded"
        else:
            status = "healthy"
        return {
            "status": status,
            "running": self._running,
            "modelConfigured": model_configured,
            "cooldownActive": cooldown_active,
            "cooldownRemainingSec": round(self._cooldown.remaining_seconds(), 1),
            "enabledSources": len(config.enabled_sources),
            "lastError": last_error,
            "recentLogs": self.log_buffer.recent(20),
        }


def build_default_scheduler(
    *,
    store: Optional[DocumentStore] = None,
    model: Optional[ModelClient] = None,
) -> SentinelScheduler:
    if store is None:
        config = load_sentinel_config()
        json_store = JsonDocumentStore(config.store_path or None)
        json_store.seed_defaults()
        store = json_store
    return SentinelScheduler(store=store, model=model)
