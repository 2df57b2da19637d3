"""
Environment configuration tests.
"""

import json
import logging

from src.notif_engine.config import EngineConfig
from src.notif_engine.logging_config import get_data_quality_logger, setup_engine_logging


def test_defaults(monkeypatch):
    for name in (
        "NOTIF_FETCH_BATCH_SIZE",
        "NOTIF_FETCH_CONCURRENCY",
        "NOTIF_MAX_PAGES",
        "NOTIF_POLL_INTERVAL",
        "NOTIF_ENRICH_MAX_ROUNDS",
        "NOTIF_POST_CACHE_MAX_AGE_DAYS",
        "NOTIF_LOG_DIR",
    ):
        monkeypatch.delenv(name, raising=False)

    config = EngineConfig.from_env()

    assert config.fetch_batch_size == 25
    assert config.fetch_concurrency == 4
    assert config.max_pages == 5
    assert config.poll_interval == 0
    assert config.post_cache_max_age_days == 7
    assert config.log_dir is None


def test_env_overrides_and_bad_values(monkeypatch):
    monkeypatch.setenv("NOTIF_FETCH_BATCH_SIZE", "40")
    monkeypatch.setenv("NOTIF_MAX_PAGES", "many")
    monkeypatch.setenv("NOTIF_POLL_INTERVAL", "-5")
    monkeypatch.setenv("NOTIF_FETCH_CONCURRENCY", "2")

    config = EngineConfig.from_env()

    assert config.fetch_batch_size == 25
    assert config.max_pages == 5
    assert config.poll_interval == 0
    assert config.fetch_concurrency == 2


def test_data_quality_log_is_json(tmp_path):
    logger = setup_engine_logging(tmp_path)
    setup_engine_logging(tmp_path)
    handlers = [h for h in logger.handlers if getattr(h, "baseFilename", None)]
    assert len([h for h in handlers if str(tmp_path) in h.baseFilename]) == 1

    get_data_quality_logger().warning(
        "normalize: missing uri",
        extra={"stage": "normalize", "event_uri": None, "reason": "like", "detail": "missing uri"},
    )
    for h in handlers:
        h.flush()

    line = (tmp_path / "data_quality.log").read_text(encoding="utf-8").strip().splitlines()[-1]
    record = json.loads(line)
    assert record["stage"] == "normalize"
    assert record["reason"] == "like"
    assert "event_uri" not in record

    for h in handlers:
        if str(tmp_path) in h.baseFilename:
            logger.removeHandler(h)
            h.close()
    logger.setLevel(logging.NOTSET)
