"""Core configuration, constants and errors.

Import what you need from `sentinel_pipeline.core.config` and
`sentinel_pipeline.core.constants` to avoid heavy side effects at import time.
"""

__all__ = ["config", "constants", "errors"]
