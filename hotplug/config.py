import logging as _logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(Path.home() / ".hotplug" / ".env")

_log = _logging.getLogger(__name__)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_list(name: str, default: list[str], *, sep: str = ",") -> list[str]:
    """Split a delimited env var, dropping blanks and keeping order."""
    raw = os.getenv(name)
    if raw is None:
        return list(default)
    return [item.strip() for item in raw.split(sep) if item.strip()]


# Built-in type tags: python module, JSON document, directory/extension-less.
DEFAULT_EXTS = ("py", "json", "")

# Search configuration for the shared registry
AUTO_DIRS = [
    str(Path(p).expanduser())
    for p in _env_list("HOTPLUG_AUTO_DIRS", [], sep=os.pathsep)
]
EXTS = _env_list("HOTPLUG_EXTS", [])
SCAN_ON_START = _env_bool("HOTPLUG_SCAN_ON_START", True)

# Logging
LOG_LEVEL = os.getenv("HOTPLUG_LOG_LEVEL", "INFO").strip().upper()
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

if not AUTO_DIRS:
    _log.debug("HOTPLUG_AUTO_DIRS is empty; shared registry starts with no roots")


def configure_logging(level: str | None = None) -> None:
    """Install a stdout handler for host processes that have none."""
    lvl = getattr(_logging, (level or LOG_LEVEL).upper(), _logging.INFO)
    _logging.basicConfig(
        level=lvl,
        format=LOG_FORMAT,
        handlers=[_logging.StreamHandler(sys.stdout)],
    )
