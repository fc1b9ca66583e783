"""Data models passed between the crawl, parse and image stages."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, List, Optional, Set, Tuple


@dataclass
class CrawlState:
    """Visited set and FIFO frontier owned by a single crawl run."""

    visited: Set[str] = field(default_factory=set)
    queue: Deque[str] = field(default_factory=deque)

    def enqueue(self, url: str) -> bool:
        if not url or url in self.visited:
            return False
        self.queue.append(url)
        return True

    def next_unvisited(self) -> Optional[str]:
        """Pop queued URLs until one has not been visited yet."""
        while self.queue:
            url = self.queue.popleft()
            if url not in self.visited:
                return url
        return None

    def has_pending(self) -> bool:
        """Drop visited URLs from the front of the queue; True if one is left."""
        while self.queue and self.queue[0] in self.visited:
            self.queue.popleft()
        return bool(self.queue)


@dataclass
class PageRecord:
    """Raw HTML captured for a crawled URL."""

    url: str
    html: str
    local_path: str


@dataclass
class CrawlError:
    """A URL that still failed after the fetcher gave up."""

    url: str
    error: str
    timestamp: str

    def to_dict(self) -> Dict[str, str]:
        return {"url": self.url, "error": self.error}


@dataclass
class CrawlResult:
    """Everything gathered by a crawl run, complete or cut short."""

    pages: List[PageRecord] = field(default_factory=list)
    image_urls: Set[str] = field(default_factory=set)
    errors: List[CrawlError] = field(default_factory=list)


@dataclass
class PageImage:
    """Image reference found inside a page's content region."""

    src: str
    alt: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {"src": self.src, "alt": self.alt}


@dataclass
class ParsedPage:
    """Structured content extracted from one captured legacy page."""

    url_path: str
    file_path: str
    locale: str
    group_name: str
    title: str = ""
    description: str = ""
    keywords: str = ""
    headings: List[str] = field(default_factory=list)
    body_text: str = ""
    body_html: str = ""
    images: List[PageImage] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "urlPath": self.url_path,
            "filePath": self.file_path,
            "locale": self.locale,
            "groupName": self.group_name,
            "title": self.title,
            "description": self.description,
            "keywords": self.keywords,
            "headings": list(self.headings),
            "bodyText": self.body_text,
            "bodyHtml": self.body_html,
            "images": [image.to_dict() for image in self.images],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ParsedPage":
        return cls(
            url_path=data.get("urlPath", ""),
            file_path=data.get("filePath", ""),
            locale=data.get("locale", ""),
            group_name=data.get("groupName", ""),
            title=data.get("title", ""),
            description=data.get("description", ""),
            keywords=data.get("keywords", ""),
            headings=list(data.get("headings", [])),
            body_text=data.get("bodyText", ""),
            body_html=data.get("bodyHtml", ""),
            images=[
                PageImage(src=item.get("src", ""), alt=item.get("alt", ""))
                for item in data.get("images", [])
            ],
        )


@dataclass
class PageGroup:
    """Locale variants of one logical page."""

    group_name: str
    url_paths: List[str]
    locales: Dict[str, ParsedPage]
    canonical_path: str
    keywords: List[str] = field(default_factory=list)
    images: List[PageImage] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "groupName": self.group_name,
            "urlPaths": list(self.url_paths),
            "locales": {
                locale: page.to_dict() for locale, page in self.locales.items()
            },
            "canonicalPath": self.canonical_path,
            "keywords": list(self.keywords),
            "images": [image.to_dict() for image in self.images],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PageGroup":
        return cls(
            group_name=data.get("groupName", ""),
            url_paths=list(data.get("urlPaths", [])),
            locales={
                locale: ParsedPage.from_dict(page)
                for locale, page in (data.get("locales") or {}).items()
            },
            canonical_path=data.get("canonicalPath", ""),
            keywords=list(data.get("keywords", [])),
            images=[
                PageImage(src=item.get("src", ""), alt=item.get("alt", ""))
                for item in data.get("images", [])
            ],
        )


@dataclass
class LegacyPagesIndex:
    """Flat path lookup over every parsed page."""

    path_to_group: Dict[str, str] = field(default_factory=dict)
    groups: List[str] = field(default_factory=list)
    paths: List[str] = field(default_factory=list)
    generated_at: str = ""
    total_pages: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "generatedAt": self.generated_at,
            "totalPages": self.total_pages,
            "totalGroups": len(self.groups),
            "pathToGroup": dict(self.path_to_group),
            "groups": list(self.groups),
            "paths": list(self.paths),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LegacyPagesIndex":
        return cls(
            path_to_group=dict(data.get("pathToGroup") or {}),
            groups=list(data.get("groups", [])),
            paths=list(data.get("paths", [])),
            generated_at=data.get("generatedAt", ""),
            total_pages=int(data.get("totalPages", 0)),
        )


@dataclass(frozen=True)
class ImageVariant:
    """One resized rendition of a source image."""

    width: int
    webp: str
    fallback: str

    def to_dict(self) -> Dict[str, Any]:
        return {"width": self.width, "webp": self.webp, "fallback": self.fallback}


@dataclass(frozen=True)
class ImageManifestEntry:
    """Responsive variants registered for one source image."""

    original: str
    variants: Tuple[ImageVariant, ...]
    srcset: str
    fallback_src: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "original": self.original,
            "variants": [variant.to_dict() for variant in self.variants],
            "srcset": self.srcset,
            "fallbackSrc": self.fallback_src,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ImageManifestEntry":
        return cls(
            original=data.get("original", ""),
            variants=tuple(
                ImageVariant(
                    width=int(item["width"]),
                    webp=item.get("webp", ""),
                    fallback=item.get("fallback", ""),
                )
                for item in data.get("variants", [])
            ),
            srcset=data.get("srcset", ""),
            fallback_src=data.get("fallbackSrc", ""),
        )


ImageManifest = Dict[str, ImageManifestEntry]
