"""Typed models for feed items, drafts and run summaries."""

from .article import (
    Draft,
    DuplicateCheck,
    EnhancedContent,
    GenerationResult,
    PersistResult,
    RawItem,
    RunSummary,
    SafetyResult,
    ScoredItem,
    Source,
)

__all__ = [
    "Draft",
    "DuplicateCheck",
    "EnhancedContent",
    "GenerationResult",
    "PersistResult",
    "RawItem",
    "RunSummary",
    "SafetyResult",
    "ScoredItem",
    "Source",
]
