from __future__ import annotations

import logging
import sys
from datetime import datetime
from pathlib import Path


LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(stage)s | %(section)s | %(name)s | %(message)s"
# stderr gets the short form; the file keeps timestamps and logger names.
CONSOLE_FORMAT = "%(levelname)-7s | %(stage)s | %(section)s | %(message)s"

RECORD_DEFAULTS = {"stage": "-", "section": "-"}
_RUN_HANDLER_ATTR = "_propkb_run_handler"


class DefaultFieldsFilter(logging.Filter):
    """Fill in `stage`/`section` for records logged without `extra=`."""

    def filter(self, record: logging.LogRecord) -> bool:
        for field, value in RECORD_DEFAULTS.items():
            record.__dict__.setdefault(field, value)
        return True


def _make_run_log_path(output_root: Path, run_name: str) -> Path:
    ts = datetime.now().strftime("%Y%m%d_%H%M%S")
    candidate = output_root / f"{run_name}_{ts}.log"
    suffix = 0
    # Two runs started within the same second get "_1", "_2", ...
    while candidate.exists():
        suffix += 1
        candidate = output_root / f"{run_name}_{ts}_{suffix}.log"
    return candidate


def _tag_run_handler(handler: logging.Handler, level: int, fmt: str) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt, datefmt=LOG_DATE_FORMAT))
    handler.addFilter(DefaultFieldsFilter())
    setattr(handler, _RUN_HANDLER_ATTR, True)
    return handler


def run_handlers(root: logging.Logger | None = None) -> list[logging.Handler]:
    root = root or logging.getLogger()
    return [h for h in root.handlers if getattr(h, _RUN_HANDLER_ATTR, False)]


def teardown_run_logging() -> int:
    """Detach and close the handlers installed by `setup_run_logging`.

    Returns the number of handlers removed. Handlers added by anyone else
    (pytest, an embedding application) stay in place.
    """
    root = logging.getLogger()
    handlers = run_handlers(root)
    for handler in handlers:
        root.removeHandler(handler)
        handler.close()
    return len(handlers)


def setup_run_logging(
    *,
    output_root: Path,
    level: int = logging.INFO,
    console: bool = False,
    run_name: str = "run",
) -> Path:
    """Route root logging for one run into `output_root/<run_name>_YYYYmmdd_HHMMSS.log`.

    Handlers from a previous run are replaced, so calling this once per run
    never duplicates lines. With `console`, records are echoed to stderr too.
    """
    output_root.mkdir(parents=True, exist_ok=True)
    log_path = _make_run_log_path(output_root, run_name)

    teardown_run_logging()
    root = logging.getLogger()
    root.setLevel(level)

    root.addHandler(_tag_run_handler(logging.FileHandler(log_path, mode="w", encoding="utf-8"), level, LOG_FORMAT))
    if console:
        root.addHandler(_tag_run_handler(logging.StreamHandler(sys.stderr), level, CONSOLE_FORMAT))

    return log_path
