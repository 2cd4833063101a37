from .common import (
    clean_text,
    clean_text_ws,
    is_mostly_non_latin,
    normalize_for_hash,
    normalize_title,
    parse_datetime_utc,
    sanitize_text,
    slugify,
    struct_time_to_utc,
    title_prefix,
    to_iso,
    truncate,
)

__all__ = [
    "clean_text",
    "clean_text_ws",
    "is_mostly_non_latin",
    "normalize_for_hash",
    "normalize_title",
    "parse_datetime_utc",
    "sanitize_text",
    "slugify",
    "struct_time_to_utc",
    "title_prefix",
    "to_iso",
    "truncate",
]
