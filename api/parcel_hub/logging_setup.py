# parcel_hub/logging_setup.py
"""
Rotating file log for the API process.

Everything lands in PARCEL_DATA_ROOT/logs/parcel_hub.log. LOG_LEVEL sets the
root and server loggers; PIPELINE_LOG_LEVEL (optional) overrides the level of
the `parcel_hub.services` loggers, e.g. DEBUG to see unmatched SKUs during an
import without turning up uvicorn.
"""
from __future__ import annotations
import logging, logging.handlers
from pathlib import Path

LOG_FILE_NAME = "parcel_hub.log"
PIPELINE_LOGGER = "parcel_hub.services"
SERVER_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access", "fastapi")


def _has_handler(logger: logging.Logger, log_path: Path) -> bool:
    return any(getattr(h, "baseFilename", None) == str(log_path) for h in logger.handlers)


def setup_logging(settings) -> Path:
    log_dir = Path(settings.PARCEL_DATA_ROOT).expanduser() / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = (log_dir / LOG_FILE_NAME).resolve()

    level = logging.getLevelName(str(settings.LOG_LEVEL).upper())
    handler = logging.handlers.RotatingFileHandler(
        log_path,
        maxBytes=settings.LOG_MAX_BYTES,
        backupCount=settings.LOG_BACKUP_COUNT,
        encoding="utf-8",
    )
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s - %(message)s"))

    root = logging.getLogger()
    root.setLevel(level)
    if not _has_handler(root, log_path):
        root.addHandler(handler)

    # server loggers may not propagate to root
    for name in SERVER_LOGGERS:
        lg = logging.getLogger(name)
        lg.setLevel(level)
        if not _has_handler(lg, log_path):
            lg.addHandler(handler)

    pipeline = logging.getLogger(PIPELINE_LOGGER)
    if settings.PIPELINE_LOG_LEVEL:
        pipeline.setLevel(logging.getLevelName(str(settings.PIPELINE_LOG_LEVEL).upper()))
    else:
        pipeline.setLevel(logging.NOTSET)

    return log_path
