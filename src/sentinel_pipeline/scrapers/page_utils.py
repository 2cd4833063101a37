from __future__ import annotations

import re
from typing import Any, Iterable, Optional
from urllib.parse import urljoin, urlparse

import requests
import trafilatura
from bs4 import BeautifulSoup

from sentinel_pipeline.core.constants import (
    DEFAULT_IMAGE_SELECTORS,
    DOMAIN_IMAGE_SELECTORS,
    OG_IMAGE_SELECTORS,
    PAGE_USER_AGENT,
)
from sentinel_pipeline.utils import clean_text, clean_text_ws

_SKIP_IMAGE_HINTS = ("logo", "icon", "avatar", "sprite", "pixel", "placeholder")
MIN_IMAGE_DIMENSION = 200  # width/height 속성이 이보다 작으면 썸네일 후보 제외


def normalize_url(base: str, href: str) -> str:
    return urljoin(base, (href or "").strip())


def host_of(url: str) -> str:
    return (urlparse(url or "").netloc or "").lower()


def fetch_page_html(
    url: str,
    timeout_sec: int,
    session: Optional[requests.Session] = None,
) -> str:
    """페이지 HTML을 가져온다. 실패 시 requests 예외를 그대로 올린다."""
    getter = session or requests
    resp = getter.get(
        url,
        headers={
            "User-Agent": PAGE_USER_AGENT,
            "Accept": "text/html,application/xhtml+xml;q=0.9,*/*;q=0.8",
        },
        timeout=timeout_sec,
        allow_redirects=True,
    )
    resp.raise_for_status()
    return resp.text or ""


def _dimension(value: Any) -> Optional[int]:
    if value is None:
        return None
    m = re.match(r"\s*(\d+)", str(value))
    return int(m.group(1)) if m else None


def is_usable_image_url(url: str, width: Any = None, height: Any = None) -> bool:
    u = (url or "").strip()
    if not u or u.startswith("data:"):
        return False
    path = urlparse(u).path.lower()
    if path.endswith(".svg") or path.endswith(".gif"):
        return False
    if any(hint in path for hint in _SKIP_IMAGE_HINTS):
        return False
    for dim in (_dimension(width), _dimension(height)):
        if dim is not None and dim < MIN_IMAGE_DIMENSION:
            return False
    return True


def extract_og_image(html: str, base_url: str) -> str:
    """og:image → og:image:url → og:image:secure_url → twitter:image → image_src."""
    if not html:
        return ""
    soup = BeautifulSoup(html, "html.parser")
    for selector, attr in OG_IMAGE_SELECTORS:
        tag = soup.select_one(selector)
        if tag and tag.get(attr):
            candidate = normalize_url(base_url, tag.get(attr))
            if is_usable_image_url(candidate):
                return candidate
    return ""


def _image_selectors(base_url: str) -> Iterable[str]:
    host = host_of(base_url)
    return DOMAIN_IMAGE_SELECTORS.get(host) or DEFAULT_IMAGE_SELECTORS


def extract_main_image(html: str, base_url: str) -> str:
    if not html:
        return ""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["header", "nav", "footer", "aside"]):
        tag.decompose()
    for selector in _image_selectors(base_url):
        for img in soup.select(selector):
            # lazy-load 속성 우선
            src = img.get("data-src") or img.get("data-original") or img.get("src") or ""
            if not src:
                continue
            candidate = normalize_url(base_url, src)
            if is_usable_image_url(candidate, img.get("width"), img.get("height")):
                return candidate
    return ""


def extract_page_title(html: str) -> str:
    if not html:
        return ""
    soup = BeautifulSoup(html, "html.parser")
    og = soup.find("meta", property="og:title")
    if og and og.get("content"):
        return clean_text_ws(og.get("content"))
    if soup.title and soup.title.string:
        return clean_text_ws(soup.title.string)
    h1 = soup.find("h1")
    return clean_text_ws(h1.get_text(" ")) if h1 else ""


def extract_page_description(html: str) -> str:
    if not html:
        return ""
    soup = BeautifulSoup(html, "html.parser")
    for attrs in ({"property": "og:description"}, {"name": "description"}):
        tag = soup.find("meta", attrs=attrs)
        if tag and tag.get("content"):
            return clean_text_ws(tag.get("content"))
    return ""


def extract_main_text(url: str, html: str) -> str:
    if not html:
        return ""
    try:
        extracted = trafilatura.extract(
            html,
            url=url,
            include_comments=False,
            include_tables=False,
        )
    except Exception:
        extracted = None
    return clean_text(extracted or "")
