import logging
import logging.handlers
import os
from pathlib import Path
from typing import Optional

from .stores import config_dir


LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(log_dir: Optional[Path] = None, level: Optional[str] = None) -> logging.Logger:
    root = logging.getLogger("bucket_files")
    if root.handlers:
        return root

    level_name = (level or os.environ.get("BUCKET_FILES_LOG_LEVEL", "INFO")).upper()
    root.setLevel(getattr(logging, level_name, logging.INFO))
    formatter = logging.Formatter(LOG_FORMAT)

    stream = logging.StreamHandler()
    stream.setFormatter(formatter)
    root.addHandler(stream)

    target_dir = log_dir or config_dir()
    try:
        target_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            target_dir / "bucket_files.log", maxBytes=2_000_000, backupCount=3, encoding="utf-8"
        )
    except OSError as exc:
        root.warning("File logging disabled: %s", exc)
    else:
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    root.propagate = False
    return root
