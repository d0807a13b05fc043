from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List, Optional


def setup_logging(debug: bool = False, logs_dir: Optional[Path] = None) -> None:
    level = logging.DEBUG if debug else logging.INFO
    fmt = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"

    # Drop handlers left by a previous call so repeated CLI invocations in tests do not duplicate output
    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)

    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if logs_dir is not None:
        logs_dir.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(logs_dir / "goblet.log", maxBytes=1_000_000, backupCount=3, encoding="utf-8")
        )

    logging.basicConfig(level=level, format=fmt, datefmt=datefmt, handlers=handlers)
