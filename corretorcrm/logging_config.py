"""
Logging configuration for CorretorCRM.

Single 'corretorcrm' logger used across all modules.

  Log file : logs/corretorcrm.log
  Rotation : 5 MB × 3 backups
  Level    : LOG_LEVEL env var (DEBUG / INFO / WARNING / ERROR / CRITICAL)
             defaults to INFO when unset

Usage
-----
    from corretorcrm.logging_config import configure_logging, log_call

    # Once at startup (idempotent):
    configure_logging()

    # On any function you want traced:
    @log_call
    def my_function(arg1, arg2):
        ...

Log format per line
-------------------
    2026-10-19 14:32:01 | INFO     | CALL leads_status | args=(lead_id='9f2c', status='lost')
    2026-10-19 14:32:01 | INFO     | OK   leads_status | 12ms
    2026-10-19 14:32:01 | ERROR    | FAIL leads_status | OperationalError: connection refused | 3ms
"""

import functools
import logging
import logging.handlers
import os
import re
import time
from pathlib import Path

_LOG_DIR = Path(__file__).parent.parent / "logs"
_LOG_FILE = _LOG_DIR / "corretorcrm.log"
_FORMAT = "%(asctime)s | %(levelname)-8s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
_MAX_BYTES = 5 * 1024 * 1024  # 5 MB
_BACKUP_COUNT = 3

# Brazilian phone numbers (+55 11 98765-4321, 11987654321, ...) and CPFs.
# Centavo amounts logged as max_price=... / min_price=... are left alone.
_PHONE_RE = re.compile(r"(?<!\d)(?<!price=)(?:\+?55[\s-]?)?\(?\d{2}\)?[\s-]?9?\d{4}[\s-]?(\d{4})(?!\d)")
_CPF_RE = re.compile(r"(?<!\d)(?<!price=)\d{3}[.\s-]?\d{3}[.\s-]?\d{3}[.\s-]?(\d{2})(?!\d)")


def mask_personal_data(text: str) -> str:
    """Mask phone numbers and CPFs, keeping only the trailing digits."""
    text = _CPF_RE.sub(lambda m: "***.***.***-" + m.group(1), text)
    return _PHONE_RE.sub(lambda m: "(**) *****-" + m.group(1), text)


class PersonalDataFilter(logging.Filter):
    """Redacts lead contact data before a record reaches the log file."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = mask_personal_data(record.getMessage())
        record.args = None
        return True


def configure_logging() -> logging.Logger:
    """
    Set up the corretorcrm logger. Idempotent, called on every CLI entry.
    Returns the configured logger.
    """
    _LOG_DIR.mkdir(exist_ok=True)

    level_name = os.environ.get("LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)

    logger = logging.getLogger("corretorcrm")

    # Guard: don't add duplicate handlers if already configured
    if logger.handlers:
        return logger

    logger.setLevel(level)

    handler = logging.handlers.RotatingFileHandler(
        _LOG_FILE,
        maxBytes=_MAX_BYTES,
        backupCount=_BACKUP_COUNT,
        encoding="utf-8",
    )
    handler.setFormatter(logging.Formatter(_FORMAT, datefmt=_DATE_FORMAT))
    handler.addFilter(PersonalDataFilter())
    logger.addHandler(handler)

    return logger


def log_call(func):
    """
    Decorator: logs entry, clean exit, and exceptions for any function.

    - DEBUG on entry   : CALL <name> | args=(...)
    - INFO  on success : OK   <name> | <N>ms
    - ERROR on failure : FAIL <name> | ExcType: message | <N>ms   (then re-raises)
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        logger = logging.getLogger("corretorcrm")
        name = func.__name__
        start = time.perf_counter()

        parts = [repr(a) for a in args] + [f"{k}={v!r}" for k, v in kwargs.items()]
        arg_str = ", ".join(parts) if parts else "-"
        logger.debug(f"CALL {name} | args=({arg_str})")

        try:
            result = func(*args, **kwargs)
            ms = int((time.perf_counter() - start) * 1000)
            logger.info(f"OK   {name} | {ms}ms")
            return result
        except Exception as exc:
            ms = int((time.perf_counter() - start) * 1000)
            logger.error(f"FAIL {name} | {type(exc).__name__}: {exc} | {ms}ms")
            raise

    return wrapper
