from __future__ import annotations

import datetime

import requests

from sentinel_pipeline.models import RawItem
from sentinel_pipeline.processing.images import CloudinaryUploader, ImageService, PassthroughUploader
from sentinel_pipeline.scrapers.page_utils import (
    extract_main_image,
    extract_og_image,
    extract_page_description,
    extract_page_title,
    is_usable_image_url,
)


class _FailingSession:
    def post(self, *args, **kwargs):
        raise requests.ConnectionError("cdn unreachable")


class _OkResponse:
    def raise_for_status(self) -> None:
        return None

    def json(self):
        return {"secure_url": "https://res.cloudinary.com/demo/image/upload/a.png"}


class _RecordingSession:
    def __init__(self) -> None:
        self.calls: list[dict] = []

    def post(self, url, data=None, files=None, timeout=None):
        self.calls.append({"url": url, "data": data, "files": files})
        return _OkResponse()


class _FailingUploader:
    def upload_image(self, data):
        return None


def _item(image_url: str | None = None, link: str = "https://news.example.com/story") -> RawItem:
    return RawItem(
        guid="g",
        title="t",
        summary="s",
        body_snippet="b",
        link=link,
        published_at=datetime.datetime(2026, 1, 10, tzinfo=datetime.timezone.utc),
        source_name="src",
        source_reliability=0.5,
        source_priority="medium",
        image_url=image_url,
    )


def test_usable_image_filter() -> None:
    assert is_usable_image_url("https://cdn.example.com/photo.jpg")
    assert not is_usable_image_url("data:image/png;base64,AAAA")
    assert not is_usable_image_url("https://cdn.example.com/site-logo.png")
    assert not is_usable_image_url("https://cdn.example.com/spinner.gif")
    assert not is_usable_image_url("https://cdn.example.com/photo.jpg", width="120")


def test_og_image_chain_skips_unusable_candidates() -> None:
    html = (
        '<meta property="og:image" content="/static/logo.png">'
        '<meta name="twitter:image" content="https://cdn.example.com/hero.jpg">'
    )
    assert extract_og_image(html, "https://news.example.com/a") == "https://cdn.example.com/hero.jpg"
    assert extract_og_image("", "https://news.example.com/a") == ""


def test_main_image_prefers_lazy_src_and_skips_chrome() -> None:
    html = (
        "<header><img src='/banner.jpg'></header>"
        "<article><img data-src='/img/story.jpg' src='/img/placeholder.png'></article>"
    )
    assert extract_main_image(html, "https://news.example.com/a") == "https://news.example.com/img/story.jpg"


def test_page_title_and_description() -> None:
    html = "<html><head><title> Page  Title </title><meta property='og:description' content='Desc'></head></html>"
    assert extract_page_title(html) == "Page Title"
    assert extract_page_description(html) == "Desc"
    assert extract_page_title("<h1>Only heading</h1>") == "Only heading"


def test_feed_image_is_used_without_page_fetch() -> None:
    def page_fetcher(url: str) -> str:
        raise AssertionError("page should not be fetched")

    service = ImageService(uploader=PassthroughUploader(), page_fetcher=page_fetcher)
    assert service.find_source_image(_item("https://cdn.example.com/feed.jpg")) == "https://cdn.example.com/feed.jpg"


def test_source_thumbnail_keeps_original_when_upload_fails() -> None:
    service = ImageService(uploader=_FailingUploader(), page_fetcher=lambda url: "")
    url = "https://cdn.example.com/feed.jpg"
    assert service.resolve_source_thumbnail(_item(url)) == url


def test_page_fetch_failure_yields_no_image() -> None:
    def page_fetcher(url: str) -> str:
        raise requests.Timeout("slow")

    logs: list = []
    service = ImageService(
        uploader=PassthroughUploader(),
        page_fetcher=page_fetcher,
        logger=lambda level, msg: logs.append(level),
    )
    assert service.find_source_image(_item()) is None
    assert logs == ["warning"]


def test_passthrough_uploader() -> None:
    uploader = PassthroughUploader()
    assert uploader.upload_image(" https://cdn.example.com/a.jpg ") == "https://cdn.example.com/a.jpg"
    assert uploader.upload_image(b"bytes") is None


def test_cloudinary_uploader_reports_failure_as_none() -> None:
    uploader = CloudinaryUploader(cloud_name="demo", upload_preset="p", session=_FailingSession())
    assert uploader.upload_image("https://cdn.example.com/a.jpg") is None


def test_cloudinary_uploader_posts_bytes_as_file() -> None:
    session = _RecordingSession()
    uploader = CloudinaryUploader(cloud_name="demo", upload_preset="p", folder="news", session=session)

    url = uploader.upload_image(b"png")

    assert url == "https://res.cloudinary.com/demo/image/upload/a.png"
    call = session.calls[0]
    assert call["url"] == "https://api.cloudinary.com/v1_1/demo/image/upload"
    assert call["data"] == {"upload_preset": "p", "folder": "news"}
    assert call["files"]["file"][1] == b"png"
