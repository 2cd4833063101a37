from __future__ import annotations

import copy
import json
import os
import threading
import uuid
from typing import Any, Optional

from sentinel_pipeline.core.constants import DEFAULT_CATEGORY_NAMES
from sentinel_pipeline.utils import normalize_title, slugify

SYSTEM_USER = {"username": "sentinel", "name": "Sentinel", "role": "admin"}


def _safe_read_json(path: str, default: Any) -> Any:
    """JSON 파일을 안전하게 로드, 실패 시 기본값 반환."""
    if not os.path.exists(path):
        return default
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except Exception:
        return default


def _atomic_write_json(path: str, payload: dict) -> None:
    """임시 파일로 저장 후 원자적 교체."""
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    tmp_path = f"{path}.tmp"
    with open(tmp_path, "w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=False, indent=2)
    os.replace(tmp_path, path)


def _empty_state() -> dict[str, list[dict[str, Any]]]:
    return {"categories": [], "users": [], "articles": []}


class JsonDocumentStore:
    """단일 JSON 파일 기반 문서 저장소.

    path가 None이면 메모리에서만 동작한다 (테스트용).
    모든 읽기/쓰기는 lock 안에서 수행하고, 반환 값은 사본이다.
    """

    def __init__(self, path: Optional[str] = None) -> None:
        self._path = path
        self._lock = threading.Lock()
        state = _safe_read_json(path, None) if path else None
        self._state = _empty_state()
        if isinstance(state, dict):
            for key in self._state:
                if isinstance(state.get(key), list):
                    self._state[key] = state[key]

    @property
    def path(self) -> Optional[str]:
        return self._path

    def _flush(self) -> None:
        if self._path:
            _atomic_write_json(self._path, self._state)

    def _find(self, collection: str, predicate) -> Optional[dict[str, Any]]:
        with self._lock:
            for doc in self._state[collection]:
                if predicate(doc):
                    return copy.deepcopy(doc)
        return None

    def _insert(self, collection: str, document: dict[str, Any]) -> str:
        doc = copy.deepcopy(document)
        doc_id = str(doc.get("_id") or uuid.uuid4().hex)
        doc["_id"] = doc_id
        with self._lock:
            self._state[collection].append(doc)
            self._flush()
        return doc_id

    # --- 카테고리 / 사용자 ---
    def add_category(self, slug: str, name: str) -> str:
        return self._insert("categories", {"slug": slug, "name": {"en": name}})

    def add_user(self, username: str, role: str = "user", name: str = "") -> str:
        return self._insert("users", {"username": username, "name": name or username, "role": role})

    def seed_defaults(self) -> None:
        """기본 카테고리와 시스템 작성자가 없으면 생성."""
        for slug, name in DEFAULT_CATEGORY_NAMES.items():
            if not self.find_category_by_slug(slug):
                self.add_category(slug, name)
        if not self.find_admin_user():
            self.add_user(SYSTEM_USER["username"], role=SYSTEM_USER["role"], name=SYSTEM_USER["name"])

    def find_category_by_slug(self, slug: str) -> Optional[dict[str, Any]]:
        key = (slug or "").strip().lower()
        return self._find("categories", lambda d: str(d.get("slug") or "").lower() == key)

    def find_category_by_name(self, name: str) -> Optional[dict[str, Any]]:
        key = (name or "").strip().lower()

        def _match(doc: dict[str, Any]) -> bool:
            names = doc.get("name")
            values = names.values() if isinstance(names, dict) else [names]
            return any(str(v or "").strip().lower() == key for v in values)

        return self._find("categories", _match)

    def find_any_category(self) -> Optional[dict[str, Any]]:
        return self._find("categories", lambda d: True)

    def find_admin_user(self) -> Optional[dict[str, Any]]:
        return self._find("users", lambda d: d.get("role") == "admin")

    def find_any_user(self) -> Optional[dict[str, Any]]:
        return self._find("users", lambda d: True)

    # --- 기사 ---
    def find_article_by_guid(self, guid: str) -> Optional[dict[str, Any]]:
        if not guid:
            return None
        return self._find("articles", lambda d: (d.get("source") or {}).get("guid") == guid)

    def find_article_by_title(self, title: str) -> Optional[dict[str, Any]]:
        key = normalize_title(title)
        if not key:
            return None
        return self._find(
            "articles",
            lambda d: normalize_title((d.get("title") or {}).get("en", "")) == key,
        )

    def find_article_by_title_prefix(self, prefix: str) -> Optional[dict[str, Any]]:
        # 정규화 제목에 prefix가 포함되면 일치 (대소문자 무시)
        key = normalize_title(prefix)
        if not key:
            return None
        return self._find(
            "articles",
            lambda d: key in normalize_title((d.get("title") or {}).get("en", "")),
        )

    def insert_article(self, document: dict[str, Any]) -> str:
        doc = dict(document)
        if not doc.get("slug"):
            doc["slug"] = slugify((doc.get("title") or {}).get("en", ""))
        return self._insert("articles", doc)

    def list_articles(self) -> list[dict[str, Any]]:
        with self._lock:
            return copy.deepcopy(self._state["articles"])

    def count_articles(self) -> int:
        with self._lock:
            return len(self._state["articles"])
