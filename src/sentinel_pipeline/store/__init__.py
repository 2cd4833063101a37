"""Document store implementations."""

from sentinel_pipeline.store.json_store import JsonDocumentStore

__all__ = ["JsonDocumentStore"]
