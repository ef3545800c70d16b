# carsync/utils.py
"""Shared utilities: logging, the retry decorator and small text helpers."""
import os
import re
import logging
import time
from datetime import datetime, timezone
from functools import wraps
from typing import Optional, Tuple
from dotenv import load_dotenv

load_dotenv()

def get_logger(name=__name__):
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        format="%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
        level=getattr(logging, level, logging.INFO)
    )
    return logging.getLogger(name)

logger = get_logger("carsync")

def retry(exceptions, tries=3, delay=1, backoff=2, logger=logger, sleep=time.sleep):
    def deco_retry(f):
        @wraps(f)
        def f_retry(*args, **kwargs):
            mtries, mdelay = tries, delay
            while mtries > 1:
                try:
                    return f(*args, **kwargs)
                except exceptions as e:
                    logger.warning("Retryable error: %s, retrying in %s sec", e, mdelay)
                    sleep(mdelay)
                    mtries -= 1
                    mdelay *= backoff
            return f(*args, **kwargs)
        return f_retry
    return deco_retry


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive timestamps (SQLite drops the offset) as UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


_AMOUNT_RE = re.compile(r"\d(?:[\d,\u00a0\u202f ]*\d)?(?:\.\d+)?")

def parse_price(text, currency="AED") -> Tuple[Optional[str], Optional[int]]:
    """Return ``(display, numeric)`` for a free-text price.

    Grouping separators are dropped and only the integer magnitude is kept.
    When no digits are present the display falls back to the raw text.
    """
    if text is None:
        return None, None
    if isinstance(text, (int, float)):
        text = str(text)
    raw = " ".join(str(text).split())
    if not raw:
        return None, None
    m = _AMOUNT_RE.search(str(text))
    if not m:
        return raw, None
    digits = re.sub(r"[, \u00a0\u202f]", "", m.group(0)).split(".")[0]
    if not digits:
        return raw, None
    numeric = int(digits)
    return f"{currency} {numeric:,}", numeric


def clean_text(value) -> Optional[str]:
    if value is None:
        return None
    s = " ".join(str(value).split())
    return s or None
