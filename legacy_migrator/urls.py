"""URL resolution, normalization and classification helpers."""

from __future__ import annotations

import posixpath
import re
from typing import Iterable, List, Optional
from urllib.parse import unquote, urljoin, urlsplit

SKIPPABLE_PREFIXES = ("mailto:", "tel:", "javascript:", "data:")
_EXTENSION_PATTERN = re.compile(r"\.\w+$")


def resolve(ref: str, base: str) -> str:
    """Resolve ``ref`` against ``base``; returns ``""`` when it cannot be parsed."""
    ref = (ref or "").strip()
    if not ref:
        return ""
    try:
        resolved = urljoin(base or "", ref)
        parts = urlsplit(resolved)
    except ValueError:
        return ""
    if resolved.startswith("//"):
        resolved = "https:" + resolved
    elif parts.scheme and parts.scheme not in ("http", "https"):
        return resolved
    elif parts.scheme and not parts.netloc:
        return ""
    return resolved


def _strip_trailing_slash(path: str) -> str:
    if len(path) > 1 and path.endswith("/"):
        path = path.rstrip("/") or "/"
    return path


def normalize(url: str) -> str:
    """Drop query and fragment, and any trailing slash except the root's."""
    if not url:
        return ""
    try:
        parts = urlsplit(url.strip())
    except ValueError:
        return ""
    if parts.scheme and parts.netloc:
        path = _strip_trailing_slash(parts.path or "/")
        return f"{parts.scheme.lower()}://{parts.netloc.lower()}{path}"
    cleaned = url.strip().split("?", 1)[0].split("#", 1)[0]
    return _strip_trailing_slash(cleaned)


def _host_matches(host: str, domains: Iterable[str]) -> bool:
    host = host.lower()
    for domain in domains:
        domain = domain.lower()
        if host == domain or host.endswith("." + domain):
            return True
    return False


def is_allowed_domain(url: str, domains: Iterable[str]) -> bool:
    """Relative references are always allowed; absolute ones must match a domain."""
    if not url:
        return False
    candidate = url.strip()
    if candidate.startswith("//"):
        candidate = "https:" + candidate
    try:
        parts = urlsplit(candidate)
        host = parts.hostname
    except ValueError:
        return False
    if not parts.scheme and not parts.netloc:
        return True
    if parts.scheme not in ("http", "https") or not host:
        return False
    return _host_matches(host, domains)


def is_skippable_href(href: Optional[str]) -> bool:
    if not href:
        return True
    trimmed = href.strip()
    if not trimmed or trimmed == "#":
        return True
    return trimmed.lower().startswith(SKIPPABLE_PREFIXES)


def extract_pathname(url: str) -> Optional[str]:
    """Return the path component of an absolute or root-relative reference."""
    if not url:
        return None
    if url.startswith(("http://", "https://", "//")):
        try:
            return urlsplit(url if not url.startswith("//") else "https:" + url).path or "/"
        except ValueError:
            return None
    if url.startswith("/"):
        return url.split("?", 1)[0].split("#", 1)[0]
    return None


def _mirror_segments(pathname: str) -> List[str]:
    """Decoded path segments with empty, ``.`` and ``..`` parts dropped."""
    decoded = unquote(pathname).replace("\\", "/")
    return [segment for segment in decoded.split("/") if segment not in ("", ".", "..")]


def page_local_path(url: str) -> str:
    """Mirror a page URL under ``pages/``; directories get an ``index.html``."""
    pathname = extract_pathname(url) or "/"
    segments = _mirror_segments(pathname)
    if not segments:
        return "pages/index.html"
    relative = "/".join(segments)
    if pathname.endswith("/") or not _EXTENSION_PATTERN.search(relative):
        relative += "/index.html"
    return f"pages/{relative}"


def image_local_path(url: str) -> str:
    """Mirror an image URL under ``images/``."""
    pathname = extract_pathname(url)
    if pathname is None:
        pathname = re.sub(r"[^a-zA-Z0-9._-]", "_", url)
    segments = _mirror_segments(pathname)
    return "images/" + ("/".join(segments) or "unknown")


def join_page_relative(url_path: str, src: str) -> str:
    """Resolve an image ``src`` against the directory of a page path."""
    if src.startswith(("http://", "https://", "//")):
        return extract_pathname(src) or ""
    if src.startswith("/"):
        return src.split("?", 1)[0].split("#", 1)[0]
    page_dir = posixpath.dirname(url_path) or "/"
    joined = posixpath.normpath(posixpath.join(page_dir, src.split("?", 1)[0]))
    if not joined.startswith("/"):
        joined = "/" + joined
    return joined
