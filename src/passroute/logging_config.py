from __future__ import annotations

import logging.config
import os
from pathlib import Path
from typing import Any, Optional

import yaml

from passroute.settings import project_root


LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def _default_logging_dict(level: str) -> dict[str, Any]:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"standard": {"format": LOG_FORMAT}},
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": "DEBUG",
                "formatter": "standard",
                "stream": "ext://sys.stderr",
            }
        },
        # Engine loggers follow the requested level; third-party libraries stay at WARNING.
        "loggers": {
            "passroute": {"level": level},
            "httpx": {"level": "WARNING"},
        },
        "root": {"level": "WARNING", "handlers": ["console"]},
    }


def configure_logging(
    logging_config_path: str | Path | None = None,
    *,
    level: Optional[str] = None,
) -> None:
    """Configure logging from `configs/logging.yaml`, or a console default when it is absent.

    `level` (or `PASSROUTE_LOG_LEVEL`) overrides the level of the `passroute` logger in either case.
    """

    root = project_root()
    candidate = logging_config_path or os.getenv(
        "PASSROUTE_LOGGING_CONFIG", "configs/logging.yaml"
    )
    resolved_level = (level or os.getenv("PASSROUTE_LOG_LEVEL") or "INFO").upper()

    path = Path(candidate)
    if not path.is_absolute():
        path = root / path
    if not path.exists():
        logging.config.dictConfig(_default_logging_dict(resolved_level))
        return

    config: dict[str, Any] = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    logging.config.dictConfig(config)
    if level or os.getenv("PASSROUTE_LOG_LEVEL"):
        logging.getLogger("passroute").setLevel(resolved_level)
