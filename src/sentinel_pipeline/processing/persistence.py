from __future__ import annotations

from typing import Any, Optional

from sentinel_pipeline.models import Draft, PersistResult, RawItem
from sentinel_pipeline.processing.types import DocumentStore, LogFunc, NowFunc, null_log, utc_now
from sentinel_pipeline.utils import slugify, to_iso

DUPLICATE_GUID = "duplicate_guid"
DUPLICATE_TITLE = "duplicate_title"
DUPLICATE_REASONS = frozenset({DUPLICATE_GUID, DUPLICATE_TITLE})


def _doc_id(doc: Optional[dict[str, Any]]) -> Optional[str]:
    if not doc:
        return None
    value = doc.get("_id") or doc.get("id")
    return str(value) if value else None


class PersistenceGuard:
    """최종 중복 검사 + 카테고리/작성자 해석 + 문서 조립 + 단일 insert.

    같은 guid(또는 정규화 제목)로 두 번째 저장은 created=False로 거절된다.
    예외는 밖으로 올리지 않고 PersistResult.reason으로 보고한다.
    """

    def __init__(
        self,
        *,
        store: DocumentStore,
        logger: LogFunc = null_log,
        now_provider: NowFunc = utc_now,
    ) -> None:
        self._store = store
        self._log = logger
        self._now_provider = now_provider

    def resolve_category(self, category: str) -> Optional[dict[str, Any]]:
        # slug → 이름 → 아무 카테고리
        slug = slugify(category or "other") or "other"
        return (
            self._store.find_category_by_slug(slug)
            or self._store.find_category_by_name(category or "other")
            or self._store.find_any_category()
        )

    def resolve_author(self) -> Optional[dict[str, Any]]:
        return self._store.find_admin_user() or self._store.find_any_user()

    def find_duplicate(self, draft: Draft, item: RawItem) -> tuple[str, Optional[str]]:
        guid = item.guid or str(draft.source.get("guid") or "")
        if guid:
            existing = self._store.find_article_by_guid(guid)
            if existing:
                return DUPLICATE_GUID, _doc_id(existing)
        title = draft.title.get("en") or item.title
        existing = self._store.find_article_by_title(title)
        if existing:
            return DUPLICATE_TITLE, _doc_id(existing)
        return "", None

    def build_document(
        self,
        draft: Draft,
        item: RawItem,
        *,
        category: dict[str, Any],
        author: dict[str, Any],
    ) -> dict[str, Any]:
        title_en = draft.title.get("en") or item.title
        meta = dict((draft.seo_meta or {}).get("metaDescription") or {})
        # 보조 언어 meta는 번역본이 없으면 영어를 그대로 사용
        for locale in draft.title:
            meta.setdefault(locale, meta.get("en", ""))
        return {
            "title": dict(draft.title),
            "description": dict(draft.description),
            "content": dict(draft.content),
            "slug": slugify(title_en),
            "category": _doc_id(category),
            "tags": list(draft.tags)[:7],
            "thumbnail": draft.thumbnail_url,
            "images": [],
            "author": _doc_id(author),
            "status": "draft",
            "isFeatured": bool(draft.is_featured),
            "isBreaking": bool(draft.is_breaking),
            "source": {
                "name": item.source_name or "Unknown",
                "url": item.link or None,
                "publishedAt": to_iso(item.published_at),
                "guid": item.guid or None,
            },
            "ingestion": {
                "method": "sentinel",
                "model": draft.generation_metadata.get("model") or None,
                "retries": 0,
            },
            "metaDescription": meta,
            "keywords": (draft.seo_meta or {}).get("keywords", ""),
            "safetyScore": draft.safety_score,
            "generationMetadata": dict(draft.generation_metadata),
            "createdAt": to_iso(self._now_provider()),
        }

    def persist(self, draft: Draft, item: RawItem) -> PersistResult:
        try:
            reason, matched_id = self.find_duplicate(draft, item)
            if reason:
                self._log("info", f"[Sentinel] final guard: {reason} for '{item.title}'")
                return PersistResult(created=False, article_id=matched_id, reason=reason)

            category = self.resolve_category(draft.category)
            if not category:
                self._log("warning", "⚠️ [Sentinel] No category found. Skipping.")
                return PersistResult(created=False, reason="no_category")
            author = self.resolve_author()
            if not author:
                self._log("warning", "⚠️ [Sentinel] No author found. Skipping.")
                return PersistResult(created=False, reason="no_author")

            document = self.build_document(draft, item, category=category, author=author)
            article_id = self._store.insert_article(document)
        except Exception as e:
            self._log("error", f"❌ [Sentinel] persist failed for '{item.title}': {e}")
            return PersistResult(created=False, reason=f"store_error: {e}")

        document["_id"] = article_id
        self._log("info", f"[Sentinel] Draft created: {document['title'].get('en')}")
        return PersistResult(created=True, article_id=article_id, document=document)
