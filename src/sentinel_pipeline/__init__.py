"""Sentinel: feed ingestion and AI article generation pipeline."""

__version__ = "0.1.0"
