def test_package_imports() -> None:
    import sentinel_pipeline  # noqa: F401

    from sentinel_pipeline.core import config  # noqa: F401
    from sentinel_pipeline.store import JsonDocumentStore  # noqa: F401

    try:
        import pytest
    except Exception:
        return
    pytest.importorskip("feedparser")
    pytest.importorskip("trafilatura")
    from sentinel_pipeline.processing import pipeline  # noqa: F401
    from sentinel_pipeline import cli  # noqa: F401


def test_default_data_paths(monkeypatch) -> None:
    from sentinel_pipeline.core.config import load_sentinel_config

    monkeypatch.delenv("SENTINEL_SOURCES_PATH", raising=False)
    monkeypatch.delenv("SENTINEL_STORE_PATH", raising=False)
    config = load_sentinel_config()

    assert config.sources_path.replace("\\", "/").endswith("/sentinel_sources.json")
    assert config.store_path.replace("\\", "/").endswith("/sentinel_store.json")
