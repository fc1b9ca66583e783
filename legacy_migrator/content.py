"""HTML extraction, locale detection and group identity for legacy pages."""

from __future__ import annotations

import posixpath
import re
from typing import Callable, List, Optional, Tuple

from bs4 import BeautifulSoup
from bs4.element import Tag

from .config import CHROME_SELECTORS, CONTENT_SELECTORS, FLAT_CONTAINERS, KNOWN_DIR_PREFIXES
from .models import PageImage, ParsedPage
from .urls import join_page_relative
from .utils import collapse_whitespace, slugify

DEFAULT_LOCALE = "th"
HOME_GROUP = "home"

_PAGE_EXT = r"\.(?:html?|php)$"

# Evaluated in order; the first matching rule decides the locale.
LOCALE_RULES: Tuple[Tuple[re.Pattern, str], ...] = (
    (re.compile(r"_(?:en|eng)" + _PAGE_EXT, re.I), "en"),
    (re.compile(r"_(?:ch|cn)" + _PAGE_EXT, re.I), "zh"),
    (re.compile(r"_th" + _PAGE_EXT, re.I), "th"),
    (re.compile(r"(?:^|/)eng/", re.I), "en"),
    (re.compile(r"(?:^|/)ch/", re.I), "zh"),
    (re.compile(r"(?:^|/)th\.", re.I), "th"),
    (re.compile(r"home_eng", re.I), "en"),
    (re.compile(r"home_ch", re.I), "zh"),
    (re.compile(r"contact_us_en|about_us_en", re.I), "en"),
)

_DIR_PREFIX = re.compile(
    r"^(?:%s)/" % "|".join(re.escape(prefix) for prefix in KNOWN_DIR_PREFIXES), re.I
)
_EXTENSION = re.compile(_PAGE_EXT, re.I)
_LOCALE_SUFFIX = re.compile(r"_(?:en|eng|th|ch|cn)$", re.I)
_VERSIONED_EN_SUFFIX = re.compile(r"_en_v\d+$", re.I)
_TH_PREFIX = re.compile(r"^th\.", re.I)


def detect_locale(file_path: str) -> str:
    """Locale of a page from its path; Thai when no rule matches."""
    lowered = file_path.lower()
    for pattern, locale in LOCALE_RULES:
        if pattern.search(lowered):
            return locale
    return DEFAULT_LOCALE


def derive_group_name(file_path: str) -> str:
    """Identity shared by every locale variant of the same logical page."""
    file_path = file_path.lstrip("/")
    name = _DIR_PREFIX.sub("", file_path)
    name = _EXTENSION.sub("", name)
    name = _LOCALE_SUFFIX.sub("", name)
    name = _VERSIONED_EN_SUFFIX.sub("", name)
    name = _TH_PREFIX.sub("", name)
    name = slugify(name, fallback="")

    parent = posixpath.dirname(file_path)
    if not name or name.lower() == "index":
        if parent in ("", "."):
            return HOME_GROUP
        return slugify(parent, fallback=HOME_GROUP)
    if parent not in ("", ".") and parent not in FLAT_CONTAINERS:
        return f"{slugify(parent)}_{name}"
    return name


ContentPredicate = Callable[[BeautifulSoup], Optional[Tag]]


def _selector_predicate(selector: str) -> ContentPredicate:
    def find(soup: BeautifulSoup) -> Optional[Tag]:
        return soup.select_one(selector)

    find.__name__ = f"select_{selector}"
    return find


# Content-area candidates in priority order; the whole body is the fallback.
CONTENT_AREAS: Tuple[ContentPredicate, ...] = tuple(
    _selector_predicate(selector) for selector in CONTENT_SELECTORS
)


def find_content_region(soup: BeautifulSoup) -> Tag:
    for predicate in CONTENT_AREAS:
        region = predicate(soup)
        if region is not None:
            return region
    return soup.body or soup


def _detached_copy(region: Tag) -> Tag:
    """Re-parse the region so chrome removal never touches the source tree."""
    fragment = BeautifulSoup(str(region), "html.parser")
    if isinstance(region, BeautifulSoup):
        return fragment
    return fragment.find(region.name) or fragment


def _strip_chrome(region: Tag) -> Tag:
    for selector in CHROME_SELECTORS:
        for tag in region.select(selector):
            tag.decompose()
    return region


def _meta_content(soup: BeautifulSoup, name: str) -> str:
    tag = soup.find("meta", attrs={"name": re.compile(rf"^{name}$", re.I)})
    if tag and tag.get("content"):
        return tag["content"].strip()
    return ""


def extract_images(region: Tag, url_path: str) -> List[PageImage]:
    """Images in the region, deduplicated by their resolved source path."""
    images: List[PageImage] = []
    seen = set()
    for img in region.find_all("img"):
        src = (img.get("src") or "").strip()
        if not src or src.startswith("data:"):
            continue
        resolved = join_page_relative(url_path, src)
        if not resolved or resolved in seen:
            continue
        seen.add(resolved)
        images.append(PageImage(src=resolved, alt=(img.get("alt") or "").strip()))
    return images


def parse_page(html: str, file_path: str, url_path: str) -> ParsedPage:
    """Extract structured content from captured HTML.

    Malformed markup degrades to empty fields; this never raises for
    content reasons.
    """
    soup = BeautifulSoup(html or "", "html.parser")

    title = soup.title.get_text(strip=True) if soup.title else ""
    headings = [
        text
        for text in (
            collapse_whitespace(tag.get_text(" ")) for tag in soup.find_all(["h1", "h2", "h3"])
        )
        if text
    ]

    region = _strip_chrome(_detached_copy(find_content_region(soup)))
    body_html = region.decode_contents().strip()
    body_text = collapse_whitespace(region.get_text(" "))

    return ParsedPage(
        url_path=url_path,
        file_path=file_path,
        locale=detect_locale(file_path),
        group_name=derive_group_name(file_path),
        title=title,
        description=_meta_content(soup, "description"),
        keywords=_meta_content(soup, "keywords"),
        headings=headings,
        body_text=body_text,
        body_html=body_html,
        images=extract_images(region, url_path),
    )


def is_content_page(page: ParsedPage, min_body_chars: int = 20) -> bool:
    """Pages with almost no text and no headings are redirect stubs or shells."""
    return len(page.body_text) >= min_body_chars or bool(page.headings)
