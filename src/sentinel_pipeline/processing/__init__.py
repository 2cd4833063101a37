"""Scoring, deduplication, generation and persistence stages."""

__all__ = [
    "cooldown",
    "dedupe",
    "formatting",
    "generation",
    "images",
    "llm_client",
    "log_buffer",
    "parsing",
    "persistence",
    "pipeline",
    "safety",
    "scoring",
    "types",
]
