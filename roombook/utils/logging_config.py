import logging
import logging.config
import os
from pathlib import Path
from typing import Dict, List

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Loggers that should not fall through to the root handlers.
_SERVICE_LOGGERS: Dict[str, tuple] = {
    "uvicorn": (["console", "file_app"], "INFO"),
    "uvicorn.access": (["console", "file_app"], "INFO"),
    "uvicorn.error": (["console", "file_error"], "INFO"),
    "audit": (["console", "file_app"], "INFO"),
    "database": (["console", "file_app", "file_error"], "WARNING"),
    "auth_module": (["console", "file_app", "file_error"], None),
    "roombook": (["console", "file_app", "file_error"], None),
}


def _drop_old_rotations(directory: Path, file_name: str, keep: int) -> None:
    """Remove rotated copies of ``file_name`` beyond the newest ``keep``."""
    if keep < 1:
        return
    rotated = sorted(
        directory.glob(f"{file_name}.*"),
        key=lambda path: path.stat().st_mtime,
        reverse=True,
    )
    for leftover in rotated[keep:]:
        try:
            leftover.unlink()
        except OSError:
            continue


def _rotating(path: Path, level: str, max_bytes: int, keep: int) -> dict:
    return {
        "class": "logging.handlers.RotatingFileHandler",
        "formatter": "default",
        "filename": str(path),
        "maxBytes": max_bytes,
        "backupCount": keep,
        "level": level,
        "encoding": "utf8",
    }


def build_logging_config(directory: Path, level: str, max_bytes: int, keep: int) -> dict:
    loggers: Dict[str, dict] = {
        "": {
            "handlers": ["console", "file_app", "file_error"],
            "level": level,
            "propagate": True,
        }
    }
    for name, (handlers, fixed_level) in _SERVICE_LOGGERS.items():
        handler_list: List[str] = list(handlers)
        loggers[name] = {
            "handlers": handler_list,
            "level": fixed_level or level,
            "propagate": False,
        }

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"default": {"format": LOG_FORMAT}},
        "handlers": {
            "console": {"class": "logging.StreamHandler", "formatter": "default", "level": level},
            "file_app": _rotating(directory / "app.log", level, max_bytes, keep),
            "file_error": _rotating(directory / "error.log", "ERROR", max_bytes, keep),
        },
        "loggers": loggers,
    }


def setup_logging(log_dir: str = "logs"):
    """
    Configure console output plus rotating '<log_dir>/app.log' and '<log_dir>/error.log'.

    LOG_LEVEL, LOG_MAX_BYTES and LOG_BACKUP_COUNT tune the handlers.
    """
    directory = Path(os.getenv("LOG_DIR", log_dir))
    directory.mkdir(parents=True, exist_ok=True)
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    max_bytes = int(os.getenv("LOG_MAX_BYTES", str(5 * 1024 * 1024)))
    keep = int(os.getenv("LOG_BACKUP_COUNT", "3"))

    for file_name in ("app.log", "error.log"):
        _drop_old_rotations(directory, file_name, keep)

    logging.config.dictConfig(build_logging_config(directory, level, max_bytes, keep))
    logging.getLogger("roombook").info("Logging configured in %s at level %s", directory, level)
