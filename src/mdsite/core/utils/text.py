"""Slug, date-prefix and hashing helpers for document identifiers"""

import hashlib
import re
from datetime import date


DATED_STEM_RE = re.compile(r'^(\d{4})-(\d{2})-(\d{2})(?:-(.*))?$')


def slugify(text: str) -> str:
    """Convert text to a lowercase, hyphen-separated URL-safe slug."""
    text = text.lower()
    text = re.sub(r'[^\w\s-]', '', text)
    text = re.sub(r'[\s_]+', '-', text)
    return re.sub(r'-+', '-', text).strip('-')


def split_dated_stem(stem: str) -> tuple[date | None, str]:
    """Split 'YYYY-MM-DD-title' into (date, 'title'); (None, stem) when undated.

    An out-of-range prefix such as 2023-13-01 is treated as part of the title.
    """
    m = DATED_STEM_RE.match(stem)
    if not m:
        return None, stem
    try:
        prefix = date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
    except ValueError:
        return None, stem
    return prefix, m.group(4) or ''


def unique_slugs(names: list[str], fallback: str = 'item') -> dict[str, str]:
    """Map each name to a distinct slug, suffixing -2, -3 ... on collision in sorted order."""
    taken: set[str] = set()
    result: dict[str, str] = {}
    for name in sorted(names):
        base = slugify(name) or fallback
        slug, n = base, 1
        while slug in taken:
            n += 1
            slug = f"{base}-{n}"
        taken.add(slug)
        result[name] = slug
    return result


def sha256(content: str | bytes) -> str:
    """Return hex-encoded SHA-256 of content (64 chars, matches the String(64) cache column)."""
    if isinstance(content, str):
        content = content.encode("utf-8")
    return hashlib.sha256(content).hexdigest()
