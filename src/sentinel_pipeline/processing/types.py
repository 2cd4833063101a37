from __future__ import annotations

import datetime
from typing import Any, Callable, Optional, Protocol, Union

LogFunc = Callable[[str, str], None]  # (level, message)
NowFunc = Callable[[], datetime.datetime]
SleepFunc = Callable[[float], None]
FeedFetchFunc = Callable[[str, int], Any]  # (url, timeout_sec) -> feedparser 결과


def utc_now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def null_log(_level: str, _message: str) -> None:
    return None


class ModelClient(Protocol):
    def generate_content(self, prompt: str) -> str:
        ...

    def generate_image(self, prompt: str) -> Optional[bytes]:
        ...


class ImageUploader(Protocol):
    # 실패 시 예외 대신 None
    def upload_image(self, data: Union[bytes, str]) -> Optional[str]:
        ...


class DocumentStore(Protocol):
    def find_category_by_slug(self, slug: str) -> Optional[dict[str, Any]]:
        ...

    def find_category_by_name(self, name: str) -> Optional[dict[str, Any]]:
        ...

    def find_any_category(self) -> Optional[dict[str, Any]]:
        ...

    def find_admin_user(self) -> Optional[dict[str, Any]]:
        ...

    def find_any_user(self) -> Optional[dict[str, Any]]:
        ...

    def find_article_by_guid(self, guid: str) -> Optional[dict[str, Any]]:
        ...

    def find_article_by_title(self, title: str) -> Optional[dict[str, Any]]:
        ...

    def find_article_by_title_prefix(self, prefix: str) -> Optional[dict[str, Any]]:
        ...

    def insert_article(self, document: dict[str, Any]) -> str:
        ...
