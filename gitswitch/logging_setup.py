"""
Logging bootstrap shared by every front end.
Logs go to a file so the curses screen is never written over.
"""

import logging
from pathlib import Path
from typing import Optional

from .settings import Settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class _GitSwitchFileHandler(logging.FileHandler):
    pass


def init_logging(settings: Settings, level: Optional[str] = None) -> None:
    level = (level or settings.log_level).upper()
    root = logging.getLogger()
    root.setLevel(getattr(logging, level, logging.INFO))
    # Remove our own handler from an earlier call to avoid duplicates
    for h in list(root.handlers):
        if isinstance(h, _GitSwitchFileHandler):
            root.removeHandler(h)
            h.close()
    try:
        Path(settings.log_path).parent.mkdir(parents=True, exist_ok=True)
        handler: logging.Handler = _GitSwitchFileHandler(settings.log_path, encoding="utf-8")
    except OSError:
        handler = logging.NullHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
