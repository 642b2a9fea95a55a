"""Logging setup for the modhost process: rotating file, optional console, per-logger levels."""

import logging
import logging.handlers
from pathlib import Path
from typing import Any


def _level(name: Any, fallback: int = logging.INFO) -> int:
    return getattr(logging, str(name).upper(), fallback)


def _file_handler(project_root: Path, cfg: dict[str, Any]) -> logging.Handler:
    log_path = project_root / cfg.get("file", "sandbox/logs/modhost.log")
    log_path.parent.mkdir(parents=True, exist_ok=True)
    return logging.handlers.RotatingFileHandler(
        log_path,
        maxBytes=int(cfg.get("max_bytes", 10 * 1024 * 1024)),
        backupCount=int(cfg.get("backup_count", 3)),
        encoding="utf-8",
    )


def setup_logging(project_root: Path, settings: dict[str, Any]) -> None:
    """Configure the root logger from settings["logging"].

    Console output is off by default: the server console is used for commands.
    ``logging.levels`` maps logger names to levels, e.g. {"ext": "DEBUG"} for every
    extension logger (they are named ext.<extension>).
    """
    cfg = settings.get("logging", {})
    level = _level(cfg.get("level", "INFO"))
    role = settings.get("role", "server")
    formatter = logging.Formatter(
        f"%(asctime)s [%(levelname)s] [{role}] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    root = logging.getLogger()
    root.setLevel(level)
    for h in root.handlers[:]:
        root.removeHandler(h)

    handlers: list[logging.Handler] = [_file_handler(project_root, cfg)]
    if cfg.get("log_to_console", False):
        handlers.append(logging.StreamHandler())
    # Handlers stay at NOTSET so a per-logger level below the root level still gets out.
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)

    for logger_name, logger_level in (cfg.get("levels") or {}).items():
        logging.getLogger(logger_name).setLevel(_level(logger_level))
