from __future__ import annotations

import posixpath
import re
from typing import Any
from urllib.parse import urlsplit

SLUG_RE = re.compile(r"^[a-z0-9-]+$")
CATALOG_PREFIX = "data/software"

_WHITESPACE_RE = re.compile(r"\s+")
# Characters a browser refuses in a host name.
_FORBIDDEN_HOST_RE = re.compile(r"[\x00-\x20\x7f#%/<>?@\\^|\[\]]")


def normalize_whitespace(value: Any) -> str:
    if value is None:
        return ""
    return _WHITESPACE_RE.sub(" ", str(value)).strip()


def slugify(value: Any) -> str:
    slug = normalize_whitespace(value).lower()
    slug = re.sub(r"[^a-z0-9\s-]", "", slug)
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")


def is_slug(value: Any) -> bool:
    return isinstance(value, str) and bool(SLUG_RE.fullmatch(value))


def is_http_url(value: Any) -> bool:
    if not isinstance(value, str) or not value:
        return False
    try:
        parsed = urlsplit(value)
        # Accessing .port validates the authority part.
        parsed.port
    except ValueError:
        return False
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        return False
    return not _FORBIDDEN_HOST_RE.search(parsed.hostname)


def normalize_hostname(hostname: str | None) -> str:
    return (hostname or "").strip().rstrip(".").lower()


def extract_hostname(url: str) -> str:
    """Host of ``url`` without a leading ``www.``; empty when unparseable."""
    try:
        hostname = urlsplit(url).hostname or ""
    except ValueError:
        return ""
    hostname = hostname.lower()
    if hostname.startswith("www."):
        hostname = hostname[4:]
    return hostname


def top_level_domain(url: str) -> str:
    parts = extract_hostname(url).split(".")
    return parts[-1] if len(parts) > 1 else ""


def build_safe_target_path(category: str, entry_id: str) -> str | None:
    if not is_slug(category) or not is_slug(entry_id):
        return None
    candidate = posixpath.normpath(posixpath.join(CATALOG_PREFIX, category, f"{entry_id}.json"))
    if not candidate.startswith(f"{CATALOG_PREFIX}/") or not candidate.endswith(".json"):
        return None
    return candidate
