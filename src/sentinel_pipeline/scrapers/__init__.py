"""Feed and page retrieval."""

__all__ = [
    "feed_fetcher",
    "feed_fetcher_config",
    "page_utils",
]
