from __future__ import annotations

import logging
from typing import Callable, Optional, Union

import requests

from sentinel_pipeline.core import config as cfg
from sentinel_pipeline.models import RawItem
from sentinel_pipeline.processing.types import ImageUploader, LogFunc, null_log
from sentinel_pipeline.scrapers.page_utils import (
    extract_main_image,
    extract_og_image,
    fetch_page_html,
    is_usable_image_url,
)

logger = logging.getLogger(__name__)

PageFetchFunc = Callable[[str], str]


class PassthroughUploader:
    """CDN 미설정 시 사용: URL은 그대로, 바이트는 저장할 곳이 없으므로 None."""

    def upload_image(self, data: Union[bytes, str]) -> Optional[str]:
        if isinstance(data, str) and data.strip():
            return data.strip()
        return None


class CloudinaryUploader:
    """Cloudinary unsigned preset 업로드 (REST). 실패는 None으로 보고한다."""

    def __init__(
        self,
        *,
        cloud_name: str,
        upload_preset: str,
        folder: str = cfg.CLOUDINARY_FOLDER,
        timeout_sec: int = cfg.IMAGE_UPLOAD_TIMEOUT_SEC,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._endpoint = f"https://api.cloudinary.com/v1_1/{cloud_name}/image/upload"
        self._upload_preset = upload_preset
        self._folder = folder
        self._timeout_sec = timeout_sec
        self._session = session or requests.Session()

    def upload_image(self, data: Union[bytes, str]) -> Optional[str]:
        form = {"upload_preset": self._upload_preset, "folder": self._folder}
        try:
            if isinstance(data, (bytes, bytearray)):
                resp = self._session.post(
                    self._endpoint,
                    data=form,
                    files={"file": ("sentinel.png", bytes(data), "image/png")},
                    timeout=self._timeout_sec,
                )
            else:
                resp = self._session.post(
                    self._endpoint,
                    data={**form, "file": data},
                    timeout=self._timeout_sec,
                )
            resp.raise_for_status()
            payload = resp.json()
        except (requests.RequestException, ValueError) as e:
            logger.warning("⚠️ [Sentinel] Cloudinary upload failed: %s", e)
            return None
        return payload.get("secure_url") or payload.get("url") or None


def build_default_uploader() -> ImageUploader:
    if cfg.CLOUDINARY_CLOUD_NAME and cfg.CLOUDINARY_UPLOAD_PRESET:
        return CloudinaryUploader(
            cloud_name=cfg.CLOUDINARY_CLOUD_NAME,
            upload_preset=cfg.CLOUDINARY_UPLOAD_PRESET,
        )
    return PassthroughUploader()


class ImageService:
    """썸네일 탐색 체인: 피드 이미지 → og:image 계열 → 본문 대표 이미지.

    생성 이미지는 모델 호출이라 cooldown 게이트를 가진 GenerationOrchestrator가 맡는다.
    """

    def __init__(
        self,
        *,
        uploader: ImageUploader,
        page_fetcher: Optional[PageFetchFunc] = None,
        og_image_enabled: bool = True,
        scrape_enabled: bool = True,
        logger: LogFunc = null_log,
    ) -> None:
        self._uploader = uploader
        self._page_fetcher = page_fetcher or (
            lambda url: fetch_page_html(url, cfg.PAGE_FETCH_TIMEOUT_SEC)
        )
        self._og_image_enabled = og_image_enabled
        self._scrape_enabled = scrape_enabled
        self._log = logger

    def find_source_image(self, item: RawItem) -> Optional[str]:
        if item.image_url and is_usable_image_url(item.image_url):
            return item.image_url
        if not item.link or not (self._og_image_enabled or self._scrape_enabled):
            return None
        try:
            html = self._page_fetcher(item.link)
        except Exception as e:
            self._log("warning", f"⚠️ [Sentinel] page fetch for image failed ({item.link}): {e}")
            return None
        if self._og_image_enabled:
            og = extract_og_image(html, item.link)
            if og:
                return og
        if self._scrape_enabled:
            main = extract_main_image(html, item.link)
            if main:
                return main
        return None

    def upload(self, data: Union[bytes, str]) -> Optional[str]:
        try:
            return self._uploader.upload_image(data)
        except Exception as e:
            # 업로더 계약 위반(예외)도 이미지 필드만 포기
            self._log("warning", f"⚠️ [Sentinel] image upload raised: {e}")
            return None

    def resolve_source_thumbnail(self, item: RawItem) -> Optional[str]:
        """원본 이미지 URL을 업로드하고, 업로드 실패 시 원본 URL을 유지."""
        url = self.find_source_image(item)
        if not url:
            return None
        return self.upload(url) or url
