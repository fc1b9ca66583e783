"""Body-HTML cleanup expressed as ordered parse-tree transformations."""

from __future__ import annotations

import re
from typing import Callable, Optional, Sequence, Tuple

from bs4 import BeautifulSoup, Comment
from bs4.element import Tag

from .models import ImageManifestEntry
from .urls import extract_pathname

CleanupStep = Callable[[BeautifulSoup], None]
ImageLookup = Callable[[str], Optional[ImageManifestEntry]]

CONTACT_EMAIL = "info@glitter-tattoo.com"
INLINE_SIZES = (
    "(max-width: 640px) 100vw, (max-width: 768px) 80vw, (max-width: 1024px) 60vw, 1280px"
)
FLOW_CLASSES = ["inline-block", "align-top", "mr-4", "mb-4"]

_SPACER_CLASS = re.compile(r"^(?:clear|delimiter|padding\d*|cbottom|ctop)$")
_COLUMN_CLASS = re.compile(r"^col_\d+_\d+")
_TEXT_ALIGN = re.compile(r"text-align\s*:\s*[^;\"]+", re.I)
_OBFUSCATED_EMAIL = re.compile(r"\[email[^\]]*\]", re.I)
_BLANK_LINES = re.compile(r"\n{3,}")


def _classes(tag: Tag) -> list:
    value = tag.get("class") or []
    return value if isinstance(value, list) else str(value).split()


def drop_scripts_and_styles(soup: BeautifulSoup) -> None:
    for tag in soup(["script", "style"]):
        tag.decompose()


def drop_event_handlers(soup: BeautifulSoup) -> None:
    for tag in soup.find_all(True):
        for attr in [name for name in tag.attrs if name.lower().startswith("on")]:
            del tag[attr]


def drop_embeds(soup: BeautifulSoup) -> None:
    for tag in soup(["iframe", "embed", "object"]):
        tag.decompose()


def neutralize_javascript_links(soup: BeautifulSoup) -> None:
    for tag in soup.find_all(href=True):
        if tag["href"].strip().lower().startswith("javascript:"):
            tag["href"] = "#"


def drop_social_widgets(soup: BeautifulSoup) -> None:
    """Remove the sticklr share list and everything that follows it."""
    widget = soup.find("ul", class_="sticklr")
    if widget is None:
        return
    node: Optional[Tag] = widget
    while node is not None and node is not soup:
        for sibling in list(node.next_siblings):
            sibling.extract()
        node = node.parent
    widget.decompose()


def drop_obfuscated_emails(soup: BeautifulSoup) -> None:
    for tag in soup.find_all("a", class_="__cf_email__"):
        tag.decompose()
    for text in soup.find_all(string=_OBFUSCATED_EMAIL):
        text.replace_with(_OBFUSCATED_EMAIL.sub(CONTACT_EMAIL, str(text)))


def drop_spacer_divs(soup: BeautifulSoup) -> None:
    for tag in soup.find_all("div"):
        if tag.decomposed:
            continue
        classes = _classes(tag)
        if not classes or tag.find(True) or tag.get_text(strip=True):
            continue
        if any(_SPACER_CLASS.match(name) for name in classes):
            tag.decompose()


def flatten_column_classes(soup: BeautifulSoup) -> None:
    for tag in soup.find_all(class_=True):
        if any(_COLUMN_CLASS.match(name) for name in _classes(tag)):
            tag["class"] = list(FLOW_CLASSES)


def keep_text_align_only(soup: BeautifulSoup) -> None:
    for tag in soup.find_all(style=True):
        match = _TEXT_ALIGN.search(tag["style"])
        if match:
            tag["style"] = match.group(0).strip()
        else:
            del tag["style"]


def drop_widget_sections(soup: BeautifulSoup) -> None:
    for tag in soup.find_all("section"):
        if not tag.decomposed and any(
            name.startswith("homepage_widgets_bg") for name in _classes(tag)
        ):
            tag.decompose()


def drop_comments(soup: BeautifulSoup) -> None:
    for comment in soup.find_all(string=lambda text: isinstance(text, Comment)):
        comment.extract()


CLEANUP_STEPS: Tuple[Tuple[str, CleanupStep], ...] = (
    ("drop_scripts_and_styles", drop_scripts_and_styles),
    ("drop_event_handlers", drop_event_handlers),
    ("drop_embeds", drop_embeds),
    ("neutralize_javascript_links", neutralize_javascript_links),
    ("drop_social_widgets", drop_social_widgets),
    ("drop_obfuscated_emails", drop_obfuscated_emails),
    ("drop_spacer_divs", drop_spacer_divs),
    ("flatten_column_classes", flatten_column_classes),
    ("keep_text_align_only", keep_text_align_only),
    ("drop_widget_sections", drop_widget_sections),
    ("drop_comments", drop_comments),
)


def rewrite_inline_images(soup: BeautifulSoup, lookup: ImageLookup) -> None:
    """Wrap resolvable images in ``<picture>``; drop the ones that would break."""
    for img in soup.find_all("img"):
        src = (img.get("src") or "").strip()
        path = extract_pathname(src) if src.startswith(("http://", "https://", "//")) else None
        if path is None and src:
            path = src if src.startswith("/") else f"/{src}"
        entry = lookup(path) if path else None
        if entry is None:
            img.decompose()
            continue

        picture = soup.new_tag("picture")
        picture.append(
            soup.new_tag(
                "source",
                attrs={"type": "image/webp", "srcset": entry.srcset, "sizes": INLINE_SIZES},
            )
        )
        attrs = {
            name: value
            for name, value in img.attrs.items()
            if name not in ("src", "alt", "style", "srcset")
        }
        attrs.update(
            {
                "src": entry.fallback_src,
                "alt": img.get("alt", ""),
                "loading": "lazy",
                "decoding": "async",
                "style": "max-width:100%;height:auto",
            }
        )
        img.replace_with(picture)
        picture.append(soup.new_tag("img", attrs=attrs))


def clean_body_html(
    html: str,
    lookup: Optional[ImageLookup] = None,
    steps: Sequence[Tuple[str, CleanupStep]] = CLEANUP_STEPS,
) -> str:
    """Parse, apply each cleanup step in order, and serialize."""
    if not html:
        return ""
    soup = BeautifulSoup(html, "html.parser")
    for _name, step in steps:
        step(soup)
    if lookup is not None:
        rewrite_inline_images(soup, lookup)
    return _BLANK_LINES.sub("\n\n", soup.decode()).strip()
