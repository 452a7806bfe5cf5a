"""Logging setup shared by the agent, its collaborators and the CLI."""
from __future__ import annotations

import logging
import os
import sys
from datetime import datetime
from pathlib import Path

_DEFAULT_LOG_DIR = Path(__file__).resolve().parent.parent / "logs"
_FORMAT = "%(asctime)s  %(levelname)-8s  %(name)s  %(message)s"
_DATE_FMT = "%Y-%m-%d %H:%M:%S"
_configured = False
_console: logging.Handler | None = None


def get_logger(name: str) -> logging.Logger:
    """Named logger; the root handlers are installed on first use."""
    global _configured
    if not _configured:
        _configure()
        _configured = True
    return logging.getLogger(name)


def log_dir() -> Path:
    raw = os.environ.get("AUTOJOB_LOG_DIR", "").strip()
    return Path(raw) if raw else _DEFAULT_LOG_DIR


def set_level(level: int | str) -> None:
    """Raise or lower verbosity after startup (``run_agent -v``)."""
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)
    logging.getLogger().setLevel(level)
    if _console is not None:
        _console.setLevel(level)


def _file_logging_enabled() -> bool:
    return os.environ.get("AUTOJOB_LOG_FILE", "true").strip().lower() not in ("0", "false", "no", "off")


def _configure() -> None:
    global _console
    level = getattr(logging, os.environ.get("LOG_LEVEL", "INFO").upper(), logging.INFO)
    root = logging.getLogger()
    root.setLevel(level)

    # pytest and embedding applications install their own handlers
    if root.handlers:
        return

    formatter = logging.Formatter(_FORMAT, datefmt=_DATE_FMT)
    _console = logging.StreamHandler(sys.stdout)
    _console.setLevel(level)
    _console.setFormatter(formatter)
    root.addHandler(_console)

    if not _file_logging_enabled():
        return
    target = log_dir()
    try:
        target.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(target / f"autojob_{datetime.now():%Y-%m-%d}.log", encoding="utf-8")
    except OSError as exc:
        root.warning("File logging disabled (%s): %s", target, exc)
        return
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(formatter)
    root.addHandler(fh)
