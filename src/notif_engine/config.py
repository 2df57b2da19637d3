"""Runtime configuration, read from the environment (.env supported via the runner)."""

import logging
import os
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger("notif_engine.config")


def _env_int(name: str, default: int, minimum: Optional[int] = None) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning(f"Invalid integer for {name}={raw!r}; using {default}")
        return default
    if minimum is not None and value < minimum:
        logger.warning(f"{name}={value} is below {minimum}; using {default}")
        return default
    return value


@dataclass
class EngineConfig:
    """Configuration for a notification refresh run."""

    fetch_batch_size: int = 25
    """URIs per getPosts request (clamped to 1..25)"""

    fetch_concurrency: int = 4
    """Maximum getPosts requests in flight"""

    max_pages: int = 5
    """listNotifications pages to pull per pass"""

    poll_interval: int = 0
    """Seconds between passes; 0 runs a single pass"""

    enrich_max_rounds: int = 10
    """Upper bound on ancestry discovery rounds per pass"""

    post_cache_max_age_days: int = 7
    """Persisted post facts older than this are ignored"""

    log_dir: Optional[str] = None
    """Directory for the data-quality JSON log (default: <repo>/logs)"""

    def __post_init__(self):
        self.fetch_batch_size = max(1, min(self.fetch_batch_size, 25))

    @classmethod
    def from_env(cls) -> "EngineConfig":
        return cls(
            fetch_batch_size=_env_int("NOTIF_FETCH_BATCH_SIZE", 25, minimum=1),
            fetch_concurrency=_env_int("NOTIF_FETCH_CONCURRENCY", 4, minimum=1),
            max_pages=_env_int("NOTIF_MAX_PAGES", 5, minimum=1),
            poll_interval=_env_int("NOTIF_POLL_INTERVAL", 0, minimum=0),
            enrich_max_rounds=_env_int("NOTIF_ENRICH_MAX_ROUNDS", 10, minimum=1),
            post_cache_max_age_days=_env_int(
                "NOTIF_POST_CACHE_MAX_AGE_DAYS", 7, minimum=1
            ),
            log_dir=os.getenv("NOTIF_LOG_DIR") or None,
        )
