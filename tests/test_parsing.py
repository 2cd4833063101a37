from __future__ import annotations

import datetime
import time

from sentinel_pipeline.models import Source
from sentinel_pipeline.processing.parsing import EntryParser

SOURCE = Source(name="Khmer Times", feed_url="https://example.com/rss", reliability=0.8, priority="high")


def test_strip_source_suffix_from_title() -> None:
    parser = EntryParser()
    assert parser.strip_source_from_text("Port expands - Khmer Times", "Khmer Times") == "Port expands"
    assert parser.strip_source_from_text("Port expands | khmer times", "Khmer Times") == "Port expands"
    assert parser.strip_source_from_text("Khmer Times wins award", "Khmer Times") == "Khmer Times wins award"


def test_parse_entry_builds_raw_item() -> None:
    entry = {
        "id": "urn:kt:101",
        "title": "Port expands &amp; hires - Khmer Times",
        "summary": "<p>The port   expanded.</p>",
        "link": " https://example.com/a ",
        "published_parsed": time.struct_time((2026, 1, 10, 9, 30, 0, 5, 10, 0)),
        "media_content": [{"url": "https://cdn.example.com/a.jpg"}],
        "content": [{"value": "<p>Full body</p>"}, {"value": "<p>continues</p>"}],
    }

    item = EntryParser().parse_entry(entry, SOURCE)

    assert item is not None
    assert item.guid == "urn:kt:101"
    assert item.title == "Port expands & hires"
    assert item.summary == "The port expanded."
    assert item.body_snippet == "Full body continues"
    assert item.link == "https://example.com/a"
    assert item.published_at == datetime.datetime(2026, 1, 10, 9, 30, tzinfo=datetime.timezone.utc)
    assert item.image_url == "https://cdn.example.com/a.jpg"
    assert item.source_reliability == 0.8
    assert item.source_priority == "high"


def test_entry_without_title_is_skipped() -> None:
    assert EntryParser().parse_entry({"id": "x", "summary": "no title"}, SOURCE) is None


def test_body_falls_back_to_summary_and_guid_to_link() -> None:
    entry = {"title": "Rain expected", "summary": "Showers tonight", "link": "https://example.com/rain"}
    item = EntryParser().parse_entry(entry, SOURCE)

    assert item is not None
    assert item.body_snippet == "Showers tonight"
    assert item.guid == "https://example.com/rain"
    assert item.published_at is None


def test_guid_falls_back_to_source_and_title() -> None:
    item = EntryParser().parse_entry({"title": "Rain expected"}, SOURCE)
    assert item is not None
    assert item.guid == "Khmer Times-Rain expected"


def test_image_from_enclosure_and_inline_img() -> None:
    parser = EntryParser()
    enclosure = {"enclosures": [{"href": "https://cdn.example.com/e.png", "type": "image/png"}]}
    inline = {"summary": '<p>x</p><img class="hero" src="https://cdn.example.com/i.jpg">'}
    audio_only = {"enclosures": [{"href": "https://cdn.example.com/a.mp3", "type": "audio/mpeg"}]}

    assert parser.extract_image_url(enclosure) == "https://cdn.example.com/e.png"
    assert parser.extract_image_url(inline) == "https://cdn.example.com/i.jpg"
    assert parser.extract_image_url(audio_only) is None


def test_published_string_fallback() -> None:
    entry = {"published": "Sat, 10 Jan 2026 09:30:00 GMT"}
    published = EntryParser().extract_published(entry)
    assert published == datetime.datetime(2026, 1, 10, 9, 30, tzinfo=datetime.timezone.utc)


def test_body_is_truncated() -> None:
    parser = EntryParser(body_max_chars=10)
    assert parser.extract_body({"content": [{"value": "abcdefghijklmnop"}]}) == "abcdefghij"
