import datetime
import time

from sentinel_pipeline.utils import (
    clean_text,
    is_mostly_non_latin,
    normalize_for_hash,
    normalize_title,
    parse_datetime_utc,
    sanitize_text,
    slugify,
    struct_time_to_utc,
    title_prefix,
    truncate,
)

UTC = datetime.timezone.utc


def test_clean_text_strips_html_and_ws() -> None:
    assert clean_text("  hello&nbsp;<b>world</b>\n") == "hello world"


def test_sanitize_text_removes_control_chars() -> None:
    assert sanitize_text("a\x00b\x1f c") == "a b c"


def test_title_normalization_and_prefix() -> None:
    assert normalize_title("Cambodia's  NEW port: opens!") == "cambodia s new port opens"
    assert title_prefix("Cambodia launches national digital payment system") == "cambodia launches national digital"
    assert title_prefix("One", 4) == "one"
    assert normalize_for_hash("  A\tB  ") == "a b"


def test_slugify() -> None:
    assert slugify("Harbour Opens to Cargo!") == "harbour-opens-to-cargo"
    assert slugify("") == ""


def test_is_mostly_non_latin() -> None:
    assert is_mostly_non_latin("ព័ត៌មានថ្មី")
    assert not is_mostly_non_latin("Breaking news from Phnom Penh")
    assert not is_mostly_non_latin("12345")


def test_datetime_parsing_to_utc() -> None:
    assert parse_datetime_utc("2026-01-10T09:30:00Z") == datetime.datetime(2026, 1, 10, 9, 30, tzinfo=UTC)
    assert parse_datetime_utc("2026-01-10T16:30:00+07:00") == datetime.datetime(2026, 1, 10, 9, 30, tzinfo=UTC)
    assert parse_datetime_utc("not a date") is None
    st = time.struct_time((2026, 1, 10, 9, 30, 0, 5, 10, 0))
    assert struct_time_to_utc(st) == datetime.datetime(2026, 1, 10, 9, 30, tzinfo=UTC)
    assert struct_time_to_utc(None) is None


def test_truncate() -> None:
    assert truncate("abcdef", 3) == "abc"
    assert truncate("abc", 10) == "abc"
    assert truncate("", 3) == ""
