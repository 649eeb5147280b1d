"""Diagnostics for scope runs — JSON logs, native fault traces, crash reports.

Log records may carry cycle context through ``extra=``. The fields named in
CYCLE_FIELDS are lifted into each JSON line, so skipped, slow and failing
cycles can be filtered by scope and analysis size.

Everything lives under ~/.anyscope:
    logs/anyscope.log          rotating JSON log
    logs/anyscope_fault.log    faulthandler output (numpy/OpenCV/PyAV crashes)
    crash_reports/crash_*.json unhandled Python exceptions
"""

import datetime
import faulthandler
import json
import logging
import logging.handlers
import os
import sys
import time
import traceback
from pathlib import Path

from _version import __version__
from engine.cycle import get_scope_stats
from security import strip_pii

logger = logging.getLogger(__name__)

APP_DIR = "~/.anyscope"
LOG_NAME = "anyscope.log"
FAULT_LOG_NAME = "anyscope_fault.log"

MAX_CRASH_REPORTS = 5
MAX_LOG_AGE_DAYS = 7
LOG_MAX_BYTES = 10_000_000
LOG_BACKUPS = 7

# Context attached by engine.cycle through logging's `extra`
CYCLE_FIELDS = ("scope_id", "analysis_size", "frame_shape", "elapsed_ms", "cadence_ms")

_log_handler: logging.Handler | None = None
_fault_file = None
_log_dir: str | None = None


def app_path(*parts: str) -> str:
    return os.path.join(os.path.expanduser(APP_DIR), *parts)


def _validate_log_dir(env_dir: str) -> str:
    """Log directory from APP_LOG_DIR, accepted only inside the app directory."""
    default = app_path("logs")
    if not env_dir:
        return default
    resolved = os.path.realpath(env_dir)
    root = os.path.realpath(app_path())
    if resolved != root and not resolved.startswith(root + os.sep):
        logger.warning("APP_LOG_DIR outside %s, using default", APP_DIR)
        return default
    return resolved


class JSONFormatter(logging.Formatter):
    """One JSON object per line, including any cycle context."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.datetime.fromtimestamp(
                record.created, tz=datetime.timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in CYCLE_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                entry[name] = value
        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = {
                "type": type(record.exc_info[1]).__name__,
                "traceback": self.formatException(record.exc_info),
            }
        return json.dumps(entry, default=str)


def _prune(
    directory: str,
    pattern: str,
    keep: int | None = None,
    max_age_days: float | None = None,
):
    """Delete matching files beyond the newest `keep`, or older than max_age_days."""
    try:
        files = sorted(
            Path(directory).glob(pattern),
            key=lambda f: f.stat().st_mtime,
            reverse=True,
        )
        doomed = set(files[keep:]) if keep is not None else set()
        if max_age_days is not None:
            cutoff = time.time() - max_age_days * 86400
            doomed.update(f for f in files if f.stat().st_mtime < cutoff)
        for f in doomed:
            f.unlink(missing_ok=True)
    except OSError:
        logger.debug("Pruning %s skipped", directory)


def setup_structured_logging(log_dir: str | None = None) -> str:
    """Send root logging to a rotating JSON file. Returns the log directory.

    Calling again replaces the previous file handler rather than adding one.
    Level comes from APP_LOG_LEVEL (default INFO).
    """
    global _log_handler
    resolved_dir = _validate_log_dir(log_dir or os.environ.get("APP_LOG_DIR", ""))
    os.makedirs(resolved_dir, mode=0o700, exist_ok=True)

    root = logging.getLogger()
    if _log_handler is not None:
        root.removeHandler(_log_handler)
        _log_handler.close()

    handler = logging.handlers.RotatingFileHandler(
        os.path.join(resolved_dir, LOG_NAME),
        maxBytes=LOG_MAX_BYTES,
        backupCount=LOG_BACKUPS,
    )
    handler.setFormatter(JSONFormatter())
    root.addHandler(handler)
    level = os.environ.get("APP_LOG_LEVEL", "INFO").upper()
    root.setLevel(getattr(logging, level, logging.INFO))
    _log_handler = handler

    _prune(resolved_dir, LOG_NAME + "*", max_age_days=MAX_LOG_AGE_DAYS)
    return resolved_dir


def setup_faulthandler(log_dir: str):
    """Dump native tracebacks of all threads to a file outside the rotation."""
    global _fault_file
    fault_path = os.path.join(log_dir, FAULT_LOG_NAME)
    try:
        _fault_file = open(fault_path, "a", buffering=1)  # noqa: SIM115
        os.chmod(fault_path, 0o600)
        faulthandler.enable(file=_fault_file, all_threads=True)
    except OSError as e:
        print(f"WARNING: Could not enable faulthandler: {e}", file=sys.stderr)


def write_crash_report(exc_type, exc_value, exc_tb, crash_dir: str | None = None) -> str:
    """Write a PII-stripped JSON crash report with recent scope timings. Returns its path."""
    crash_dir = crash_dir or app_path("crash_reports")
    os.makedirs(crash_dir, mode=0o700, exist_ok=True)

    stamp = datetime.datetime.now(tz=datetime.timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
    report = {
        "timestamp": stamp,
        "version": __version__,
        "exception_type": exc_type.__name__ if exc_type else "Unknown",
        "exception_message": str(exc_value),
        "traceback": traceback.format_exception(exc_type, exc_value, exc_tb),
        "scope_timing": get_scope_stats(),
        "python_version": sys.version,
        "platform": sys.platform,
    }
    report = strip_pii({"extra": report}, {}).get("extra", report)

    crash_path = os.path.join(crash_dir, f"crash_{stamp}.json")
    fd = os.open(crash_path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
    with os.fdopen(fd, "w") as f:
        json.dump(report, f, indent=2)

    _prune(crash_dir, "crash_*.json", keep=MAX_CRASH_REPORTS)
    return crash_path


def setup_excepthook():
    """Write a crash report for unhandled exceptions, then defer to the default hook.

    Ctrl-C is not a crash and gets no report.
    """

    def _crash_excepthook(exc_type, exc_value, exc_tb):
        if not issubclass(exc_type, KeyboardInterrupt):
            try:
                write_crash_report(exc_type, exc_value, exc_tb)
            except Exception as e:
                print(f"WARNING: Could not write crash report: {e}", file=sys.stderr)
        sys.__excepthook__(exc_type, exc_value, exc_tb)

    sys.excepthook = _crash_excepthook


def init_diagnostics() -> str:
    """Set up logging, faulthandler and the crash hook once per process.

    Returns the log directory. Later calls are no-ops.
    """
    global _log_dir
    if _log_dir is not None:
        return _log_dir
    log_dir = setup_structured_logging()
    setup_faulthandler(log_dir)
    setup_excepthook()
    _log_dir = log_dir
    logger.info("Diagnostics initialized: logging=%s, faulthandler=enabled", log_dir)
    return log_dir
