"""Configuration objects and constants for the migration pipeline."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple
from urllib.parse import urlparse

DEFAULT_BASE_URL = os.getenv("SCRAPE_TARGET_URL", "https://www.glitter-tattoo.com")
DEFAULT_USER_AGENT = "legacy-migrator/0.1 (+site migration crawler)"

DEFAULT_MAX_RETRIES = 3
DEFAULT_DELAY_MS = 300

# Top-level directories the legacy site used for sections and locale copies.
KNOWN_DIR_PREFIXES = ("2015", "eng", "ch", "event", "event_new", "gallery")
# Directories whose pages share one namespace with the site root.
FLAT_CONTAINERS = ("2015", "eng", "ch")
# Obsolete top-level prefix that many image references still carry.
OBSOLETE_IMAGE_PREFIX = "2015"
ASSET_DIRS = ("images", "flag", "event")
SKIPPED_PAGE_DIRS = ("images", "images2Slide")

CONTENT_SELECTORS = ("main", "#content", ".content", "#main", ".main", "article")
CHROME_SELECTORS = (
    "nav",
    "header",
    "footer",
    "script",
    "style",
    "noscript",
    ".menu",
    ".navigation",
    "#menu",
    "#navigation",
)

RESPONSIVE_WIDTHS = (320, 640, 768, 1024, 1280)


def default_allowed_domains(base_url: str) -> Tuple[str, ...]:
    """Return the base URL host plus its bare (``www``-less) form."""
    host = (urlparse(base_url).hostname or "").lower()
    if not host:
        return ()
    bare = host[4:] if host.startswith("www.") else host
    return tuple(dict.fromkeys((bare, host)))


@dataclass
class CrawlConfig:
    """Settings that control crawling and raw capture."""

    output_root: Path = Path("scraped-data")
    base_url: str = DEFAULT_BASE_URL
    allowed_domains: Tuple[str, ...] = ()
    delay_ms: int = DEFAULT_DELAY_MS
    max_pages: Optional[int] = None
    max_retries: int = DEFAULT_MAX_RETRIES
    timeout: float = 15.0
    follow_frames: bool = True
    download_images: bool = True
    user_agent: str = DEFAULT_USER_AGENT

    def __post_init__(self) -> None:
        if not self.allowed_domains:
            self.allowed_domains = default_allowed_domains(self.base_url)

    @property
    def delay_seconds(self) -> float:
        return self.delay_ms / 1000.0


@dataclass
class ParseConfig:
    """Locations used when turning captured HTML into page groups."""

    pages_dir: Path = Path("scraped-data/pages")
    manifest_path: Path = Path("scraped-data/manifest.json")
    output_root: Path = Path("content/legacy")
    min_body_chars: int = 20

    @property
    def groups_dir(self) -> Path:
        return self.output_root / "groups"

    @property
    def index_path(self) -> Path:
        return self.output_root / "pages.json"


@dataclass
class ImagePipelineConfig:
    """Settings for responsive variant generation."""

    source_dir: Path = Path("scraped-data/images")
    output_dir: Path = Path("public/legacy/images")
    manifest_path: Path = Path("content/legacy/image-manifest.json")
    public_prefix: str = "/legacy/images"
    widths: Tuple[int, ...] = field(default=RESPONSIVE_WIDTHS)
    webp_quality: int = 80
    fallback_quality: int = 80
    workers: int = 4
