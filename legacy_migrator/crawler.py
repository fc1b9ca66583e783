"""Breadth-first crawl of the legacy site."""

from __future__ import annotations

import logging
import re
import time
from typing import Callable, Iterable, List, Optional, Sequence
from urllib.parse import urlsplit

from bs4 import BeautifulSoup

from .config import CrawlConfig
from .fetcher import FetchError, Fetcher
from .models import CrawlError, CrawlResult, CrawlState, PageRecord
from .urls import is_allowed_domain, is_skippable_href, normalize, page_local_path, resolve
from .utils import utc_timestamp

logger = logging.getLogger("legacy_migrator")

LINK_SOURCES = (("a", "href"), ("area", "href"))
FRAME_SOURCES = (("frame", "src"), ("iframe", "src"))
ICON_RELS = {"icon", "shortcut icon", "apple-touch-icon"}

META_REFRESH_URL = re.compile(r"url\s*=\s*['\"]?([^'\";\s>]+)", re.IGNORECASE)
SCRIPT_REDIRECTS = (
    re.compile(r"(?:\b\w+\.)*location\s*=\s*['\"]([^'\"]+)['\"]"),
    re.compile(r"(?:\b\w+\.)*location\.href\s*=\s*['\"]([^'\"]+)['\"]"),
    re.compile(r"location\.replace\s*\(\s*['\"]([^'\"]+)['\"]\s*\)"),
)
BACKGROUND_IMAGE = re.compile(
    r"background-image\s*:\s*url\(\s*['\"]?([^'\")\s]+)['\"]?\s*\)", re.IGNORECASE
)


def _crawlable(target: str, page_url: str, domains: Sequence[str]) -> Optional[str]:
    if is_skippable_href(target):
        return None
    resolved = resolve(target, page_url)
    if not resolved or not is_allowed_domain(resolved, domains):
        return None
    return normalize(resolved) or None


def extract_redirects(
    soup: BeautifulSoup, html: str, page_url: str, domains: Sequence[str]
) -> List[str]:
    """Targets of meta-refresh tags and script ``location`` assignments."""
    redirects: List[str] = []
    for meta in soup.find_all("meta", attrs={"http-equiv": re.compile(r"^refresh$", re.I)}):
        match = META_REFRESH_URL.search(meta.get("content") or "")
        if match:
            target = _crawlable(match.group(1), page_url, domains)
            if target:
                redirects.append(target)
    for pattern in SCRIPT_REDIRECTS:
        for match in pattern.finditer(html):
            target = _crawlable(match.group(1), page_url, domains)
            if target:
                redirects.append(target)
    return list(dict.fromkeys(redirects))


def extract_links(
    soup: BeautifulSoup,
    html: str,
    page_url: str,
    domains: Sequence[str],
    follow_frames: bool = True,
) -> List[str]:
    """Normalized same-domain navigation targets, redirects included."""
    sources: Iterable = LINK_SOURCES + FRAME_SOURCES if follow_frames else LINK_SOURCES
    links: List[str] = []
    for tag_name, attr in sources:
        for tag in soup.find_all(tag_name):
            target = _crawlable(tag.get(attr) or "", page_url, domains)
            if target:
                links.append(target)
    links.extend(extract_redirects(soup, html, page_url, domains))
    return links


def _srcset_urls(value: str) -> List[str]:
    urls = []
    for candidate in (value or "").split(","):
        parts = candidate.strip().split()
        if parts:
            urls.append(parts[0])
    return urls


def extract_images(soup: BeautifulSoup, page_url: str) -> List[str]:
    """Absolute URLs of every image the page references."""
    raw: List[str] = []
    for img in soup.find_all("img"):
        raw.append(img.get("src") or "")
        raw.extend(_srcset_urls(img.get("srcset") or ""))
    for source in soup.find_all("source", srcset=True):
        raw.extend(_srcset_urls(source["srcset"]))
    for link in soup.find_all("link", href=True):
        rel = link.get("rel") or []
        rel_value = " ".join(rel).lower() if isinstance(rel, list) else str(rel).lower()
        if rel_value in ICON_RELS:
            raw.append(link["href"])
    for control in soup.find_all("input"):
        if (control.get("type") or "").lower() == "image":
            raw.append(control.get("src") or "")
    for tag in soup.find_all(style=True):
        raw.extend(BACKGROUND_IMAGE.findall(tag["style"]))

    images: List[str] = []
    for src in raw:
        src = src.strip()
        if not src or src.startswith("data:"):
            continue
        resolved = resolve(src, page_url)
        if resolved and urlsplit(resolved).scheme in ("http", "https"):
            images.append(resolved)
    return images


def crawl_site(
    config: CrawlConfig,
    fetcher: Fetcher,
    *,
    start_url: Optional[str] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> CrawlResult:
    """Visit same-domain pages breadth-first, one request at a time.

    Stops when the frontier empties or ``config.max_pages`` URLs have been
    visited; whatever was gathered up to that point is returned.
    """
    state = CrawlState()
    result = CrawlResult()
    max_pages = config.max_pages
    domains = config.allowed_domains
    state.enqueue(normalize(start_url or config.base_url))
    logger.info("Starting crawl from %s", start_url or config.base_url)

    while state.queue:
        if max_pages is not None and len(state.visited) >= max_pages:
            logger.info("Reached max pages limit (%d)", max_pages)
            break
        url = state.next_unvisited()
        if url is None:
            break
        state.visited.add(url)
        logger.debug("Crawling: %s", url)

        try:
            html = fetcher.fetch_text(url)
        except FetchError as exc:
            logger.warning("Failed to crawl %s: %s", url, exc)
            result.errors.append(CrawlError(url=url, error=str(exc), timestamp=utc_timestamp()))
        else:
            soup = BeautifulSoup(html, "html.parser")
            for link in extract_links(soup, html, url, domains, config.follow_frames):
                state.enqueue(link)
            result.image_urls.update(extract_images(soup, url))
            result.pages.append(PageRecord(url=url, html=html, local_path=page_local_path(url)))
            if max_pages:
                pct = round(len(state.visited) / max_pages * 100)
                logger.debug("[%d/%d] %d%% Crawled %s", len(state.visited), max_pages, pct, url)
            else:
                logger.debug("[%d] Crawled %s", len(state.visited), url)

        budget_left = max_pages is None or len(state.visited) < max_pages
        if config.delay_ms > 0 and budget_left and state.has_pending():
            sleep(config.delay_seconds)

    logger.info(
        "Crawl complete: %d pages, %d images, %d errors",
        len(result.pages),
        len(result.image_urls),
        len(result.errors),
    )
    return result
