from __future__ import annotations

import logging
import os
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler, TimedRotatingFileHandler
from pathlib import Path
from uuid import uuid4

RUN_ID_ENV = "DROUGHTWATCH_RUN_ID"
LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s run=%(run_id)s - %(message)s"


def _new_run_id() -> str:
    stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    return f"{stamp}-{uuid4().hex[:6]}"


def get_run_id() -> str:
    """Run id shared by every process of one CLI invocation."""
    run_id = os.environ.get(RUN_ID_ENV)
    if not run_id:
        run_id = _new_run_id()
        os.environ[RUN_ID_ENV] = run_id
    return run_id


class RunIdFilter(logging.Filter):
    def __init__(self, run_id: str) -> None:
        super().__init__()
        self.run_id = run_id

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        record.run_id = self.run_id
        return True


class _RolloverGuard:
    # Windows keeps log files locked while an editor has them open
    def doRollover(self) -> None:  # type: ignore[override]
        try:
            super().doRollover()  # type: ignore[misc]
        except PermissionError:
            sys.stderr.write(
                f"[LOGGING] Permission denied while rotating log: {self.baseFilename}\n"  # type: ignore[attr-defined]
            )


class SafeRotatingFileHandler(_RolloverGuard, RotatingFileHandler):
    pass


class SafeTimedRotatingFileHandler(_RolloverGuard, TimedRotatingFileHandler):
    pass


def _file_handler(
    filename: Path, rotate: str, when: str, interval: int, backup_count: int, max_bytes: int
) -> logging.Handler:
    if rotate == "size":
        return SafeRotatingFileHandler(
            filename, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
        )
    handler = SafeTimedRotatingFileHandler(
        filename, when=when, interval=interval, backupCount=backup_count, encoding="utf-8"
    )
    handler.suffix = "%Y%m%d"
    return handler


def setup_logging(
    *,
    level: str = "INFO",
    log_dir: str | Path = "logs",
    app_name: str = "droughtwatch",
    rotate: str = "daily",
    when: str = "midnight",
    interval: int = 1,
    backup_count: int = 14,
    max_bytes: int = 5_000_000,
    to_console: bool = True,
    to_file: bool = True,
    reset: bool = True,
) -> str:
    """Configure the root logger and return the run id stamped on every record."""
    root = logging.getLogger()
    if reset:
        for handler in list(root.handlers):
            root.removeHandler(handler)

    level_value = getattr(logging, str(level).upper(), logging.INFO)
    root.setLevel(level_value)

    run_id = get_run_id()
    run_filter = RunIdFilter(run_id)
    formatter = logging.Formatter(LOG_FORMAT)

    handlers: list[logging.Handler] = []
    if to_console:
        handlers.append(logging.StreamHandler())

    if to_file:
        path = Path(log_dir)
        filename = path / f"{app_name}_{run_id}.log"
        try:
            path.mkdir(parents=True, exist_ok=True)
            handlers.append(
                _file_handler(filename, str(rotate).lower(), when, interval, backup_count, max_bytes)
            )
        except OSError as exc:
            # console logging still works; report through it
            logging.getLogger(__name__).error("Log file handler error for %s: %s", filename, exc)

    for handler in handlers:
        handler.setLevel(level_value)
        handler.setFormatter(formatter)
        handler.addFilter(run_filter)
        root.addHandler(handler)

    return run_id


def setup_logging_from_cfg(cfg: dict, app_name: str) -> str:
    log_cfg = cfg.get("logging", {}) if isinstance(cfg, dict) else {}
    rotate = str(log_cfg.get("rotate", "daily")).lower()
    if rotate not in {"daily", "size"}:
        rotate = "daily"

    return setup_logging(
        level=str(log_cfg.get("level", "INFO")).upper(),
        log_dir=log_cfg.get("dir", "logs"),
        app_name=app_name,
        rotate=rotate,
        when=str(log_cfg.get("when", "midnight")),
        interval=int(log_cfg.get("interval", 1)),
        backup_count=int(log_cfg.get("backup_count", 14)),
        max_bytes=int(log_cfg.get("max_bytes", 5_000_000)),
        to_console=bool(log_cfg.get("to_console", True)),
        to_file=bool(log_cfg.get("to_file", False)),
        reset=True,
    )
