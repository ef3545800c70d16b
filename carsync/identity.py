# carsync/identity.py
"""Listing identity: the dedup key for the whole pipeline.

A source-native id wins when the marketplace exposes one, giving
``"<source>_<native_id>"``. Otherwise the key is a SHA-1 digest of the
normalised canonical URL, which is stable across processes.

    >>> identity("yallamotor", "https://uae.yallamotor.com/used-cars/x/1", "1")
    'yallamotor_1'
"""
import hashlib
import re
from typing import Optional
from urllib.parse import urlsplit, urlunsplit, parse_qsl, urlencode


def _source_name(source) -> str:
    return getattr(source, "value", source)


def normalize_url(url: str) -> str:
    parts = urlsplit(url.strip())
    path = parts.path.rstrip("/") or "/"
    query = urlencode(sorted(parse_qsl(parts.query, keep_blank_values=True)))
    return urlunsplit((parts.scheme.lower(), parts.netloc.lower(), path, query, ""))


def identity(source, canonical_url: str, native_id: Optional[str] = None) -> str:
    if native_id:
        return f"{_source_name(source)}_{native_id}"
    digest = hashlib.sha1(normalize_url(canonical_url).encode("utf-8")).hexdigest()[:16]
    return f"{_source_name(source)}_{digest}"


def native_id_from_url(url: str, pattern: Optional[str]) -> Optional[str]:
    if not pattern or not url:
        return None
    m = re.search(pattern, urlsplit(url).path)
    return m.group(1) if m else None


def record_identity(record) -> str:
    """Identity derived from a record's own URL and native id."""
    return identity(record.source, record.canonical_url, record.native_id)


def contact_channel_for(phone: Optional[str]) -> Optional[str]:
    if not phone:
        return None
    digits = re.sub(r"\D", "", phone)
    return f"https://wa.me/{digits}" if digits else None
