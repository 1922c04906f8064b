"""URL helpers: source names, artifact base names and discovery parsing."""

import hashlib
import re
from typing import Dict, Iterable, List, Optional
from urllib.parse import urlparse, urlunparse

MAX_BASENAME_LENGTH = 180

_LIST_MARKER = re.compile(r"^\s*(?:[-*+•]|\d+[.)])\s+")
_UNSAFE_CHARS = re.compile(r'[:*?"<>|]')
_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]")


def domain_of(url: str) -> str:
    """Hostname of a URL, or an empty string."""
    return urlparse(url).hostname or ""


def source_name_for(url: str, aliases: Optional[Dict[str, str]] = None) -> str:
    """
    Derive the source identifier from a source URL.

    An alias keyed by hostname wins; otherwise the hostname loses a leading
    ``www.`` or ``static.`` and is cut at the first dot
    (``https://www.nytimes.com/`` gives ``nytimes``).
    """
    hostname = domain_of(url)
    if not hostname:
        raise ValueError(f"Cannot derive a source name from URL: {url}")

    if aliases and hostname in aliases:
        return aliases[hostname]

    hostname = re.sub(r"^(?:www\.|static\.)", "", hostname)
    return hostname.split(".")[0]


def url_to_basename(url: str) -> str:
    """
    File base name for an article URL, shared by its .html and .txt artifacts.

    Hostname, path and query are joined, separators and reserved characters
    become underscores, a trailing ``.html`` is dropped and the result is
    capped at 180 characters.
    """
    parsed = urlparse(url)
    hostname = parsed.hostname or ""
    name = hostname + parsed.path + (f"?{parsed.query}" if parsed.query else "")
    name = name.strip("/")
    name = re.sub(r"[/\\]", "_", name)
    name = _UNSAFE_CHARS.sub("_", name)
    name = re.sub(r"\.html$", "", name, flags=re.IGNORECASE)
    name = name[:MAX_BASENAME_LENGTH]

    if not name:
        digest = hashlib.sha1(url.encode("utf-8")).hexdigest()[:10]
        name = f"source_{_NON_ALNUM.sub('_', hostname) or 'unknown'}_{digest}"
    return name


def model_suffix(model: Optional[str]) -> str:
    """Filename-safe model id; ``default`` when no override was given."""
    if not model:
        return "default"
    return _NON_ALNUM.sub("_", model)


def normalize_url(url: str, strip_query: bool = False, strip_fragment: bool = True) -> str:
    parsed = urlparse(url)
    if strip_query:
        parsed = parsed._replace(query="")
    if strip_fragment:
        parsed = parsed._replace(fragment="")
    return urlunparse(parsed)


def is_absolute_http_url(candidate: str) -> bool:
    if not candidate or any(ch.isspace() for ch in candidate):
        return False
    try:
        parsed = urlparse(candidate)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def _clean_line(line: str) -> str:
    line = _LIST_MARKER.sub("", line.strip())
    return line.strip().strip("<>`'\"").rstrip(",;")


def parse_candidate_urls(
    response: str,
    strip_query: bool = False,
    strip_fragment: bool = True,
) -> List[str]:
    """
    Turn a Generator response into an ordered, de-duplicated URL list.

    Each line is stripped of list markers and quoting; lines that are not a
    well-formed absolute http(s) URL are dropped. The first occurrence of a
    URL fixes its position.
    """
    return dedupe(
        normalize_url(line, strip_query=strip_query, strip_fragment=strip_fragment)
        for line in map(_clean_line, response.splitlines())
        if is_absolute_http_url(line)
    )


def dedupe(urls: Iterable[str]) -> List[str]:
    seen = set()
    unique = []
    for url in urls:
        if url not in seen:
            seen.add(url)
            unique.append(url)
    return unique
