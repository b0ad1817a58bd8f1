from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Union

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(level: Union[str, int] = "INFO", log_dir: Optional[Path] = None) -> None:
    """
    Configure root logging with a console handler and, when `log_dir` is
    given, a UTF-8 file handler writing `syllabus_sync.log`.
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    handlers: list = [logging.StreamHandler()]
    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_dir / "syllabus_sync.log", encoding="utf-8"))

    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)
    # httpx logs every request at INFO.
    logging.getLogger("httpx").setLevel(logging.WARNING)
