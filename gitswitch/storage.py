import contextlib
import fcntl
import json
import logging
import os
import pathlib
from typing import Any, Dict, Iterator, Optional

from .errors import ReadFailure, WriteFailure

logger = logging.getLogger(__name__)

THEMES = ("blue", "purple", "pink", "orange", "green", "teal")
DEFAULT_PREFERENCES: Dict[str, Any] = {"theme": "blue"}


def ensure_ssh_dir(ssh_dir: str) -> None:
    try:
        pathlib.Path(ssh_dir).mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise WriteFailure(ssh_dir, str(exc)) from exc
    # Secure permissions for ~/.ssh
    try:
        os.chmod(ssh_dir, 0o700)
    except PermissionError:
        pass


def read_file_text(path: str) -> Optional[str]:
    """Return the file's text, or None when it does not exist."""
    if not os.path.exists(path):
        return None
    try:
        with open(path, "r", encoding="utf-8") as fh:
            return fh.read()
    except (OSError, UnicodeDecodeError) as exc:
        raise ReadFailure(path, str(exc)) from exc


def write_file_text(path: str, text: str, mode: Optional[int] = None) -> None:
    """Replace the file's content atomically."""
    tmp_path = path + ".tmp"
    try:
        pathlib.Path(path).parent.mkdir(parents=True, exist_ok=True)
        with open(tmp_path, "w", encoding="utf-8") as fh:
            fh.write(text)
        if mode is not None:
            os.chmod(tmp_path, mode)
        elif os.path.exists(path):
            os.chmod(tmp_path, os.stat(path).st_mode & 0o777)
        os.replace(tmp_path, path)
    except OSError as exc:
        with contextlib.suppress(OSError):
            os.remove(tmp_path)
        raise WriteFailure(path, str(exc)) from exc


def remove_file(path: str) -> bool:
    """Delete a file. Returns False when there was nothing to delete."""
    try:
        os.remove(path)
    except FileNotFoundError:
        return False
    except OSError as exc:
        raise WriteFailure(path, str(exc)) from exc
    return True


@contextlib.contextmanager
def file_lock(path: str) -> Iterator[None]:
    """Hold an exclusive advisory lock on ``<path>.lock`` for the block."""
    lock_path = path + ".lock"
    try:
        pathlib.Path(lock_path).parent.mkdir(parents=True, exist_ok=True)
        fh = open(lock_path, "a+")
    except OSError as exc:
        raise WriteFailure(lock_path, str(exc)) from exc
    try:
        fcntl.flock(fh.fileno(), fcntl.LOCK_EX)
        try:
            yield
        finally:
            fcntl.flock(fh.fileno(), fcntl.LOCK_UN)
    finally:
        fh.close()


def read_preferences(path: str) -> Dict[str, Any]:
    prefs = dict(DEFAULT_PREFERENCES)
    if not os.path.exists(path):
        return prefs
    try:
        with open(path, "r", encoding="utf-8") as fh:
            stored = json.load(fh)
    except (OSError, ValueError) as exc:
        logger.warning("Ignoring unreadable preferences file %s: %s", path, exc)
        return prefs
    if isinstance(stored, dict):
        prefs.update(stored)
    if prefs.get("theme") not in THEMES:
        prefs["theme"] = DEFAULT_PREFERENCES["theme"]
    return prefs


def write_preferences(path: str, data: Dict[str, Any]) -> None:
    write_file_text(path, json.dumps(data, indent=2, sort_keys=True) + "\n")
