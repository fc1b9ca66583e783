"""Read-side lookups over the built page index and image manifest."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence
from urllib.parse import unquote

from .cleanup import clean_body_html
from .config import ASSET_DIRS, OBSOLETE_IMAGE_PREFIX
from .content import DEFAULT_LOCALE
from .models import (
    ImageManifest,
    ImageManifestEntry,
    LegacyPagesIndex,
    PageGroup,
    PageImage,
    ParsedPage,
)
from .responsive import load_manifest
from .utils import read_json

logger = logging.getLogger("legacy_migrator")

_RASTER_EXTENSION = re.compile(r"\.(png|jpg|jpeg|gif)$", re.I)
EXTENSION_ALTERNATES: Dict[str, Sequence[str]] = {
    "png": (".jpg", ".jpeg"),
    "jpg": (".png",),
    "jpeg": (".png",),
    "gif": (".png", ".jpg"),
}
LOCALE_FALLBACKS = (DEFAULT_LOCALE, "en")
# Site chrome that should never show up in a content gallery.
GALLERY_EXCLUDED_FRAGMENTS = (
    "/flag/",
    "/icon/",
    "/anitmation/",
    "/animation/",
    "hothot",
    "coolcool",
    "logo.png",
)


@dataclass
class LegacyPage:
    """A resolved legacy path: its group and the locale content chosen."""

    group: PageGroup
    content: ParsedPage


def lookup_entry(
    manifest: ImageManifest, path: str, extension_fallback: bool = True
) -> Optional[ImageManifestEntry]:
    """Exact key lookup, then raster-extension equivalents of the same path."""
    entry = manifest.get(path)
    if entry is not None or not extension_fallback:
        return entry
    match = _RASTER_EXTENSION.search(path)
    if not match:
        return None
    base = path[: match.start()]
    for alternate in EXTENSION_ALTERNATES[match.group(1).lower()]:
        entry = manifest.get(base + alternate)
        if entry is not None:
            logger.debug("Image %s resolved through %s", path, base + alternate)
            return entry
    return None


def resolve_image(
    manifest: ImageManifest,
    original_src: str,
    *,
    extension_fallback: bool = True,
    obsolete_prefix: str = OBSOLETE_IMAGE_PREFIX,
) -> Optional[ImageManifestEntry]:
    """Find the manifest entry for any historical spelling of an image path."""
    if not original_src:
        return None

    def attempt(path: str) -> Optional[ImageManifestEntry]:
        return lookup_entry(manifest, path, extension_fallback)

    entry = attempt(original_src)
    if entry is not None:
        return entry

    decoded = unquote(original_src)
    if decoded != original_src:
        entry = attempt(decoded)
        if entry is not None:
            return entry

    without_prefix = original_src
    if obsolete_prefix and original_src.startswith(f"/{obsolete_prefix}/"):
        without_prefix = original_src[len(obsolete_prefix) + 1 :]
        entry = attempt(without_prefix)
        if entry is not None:
            return entry

    if not without_prefix.startswith(tuple(f"/{name}/" for name in ASSET_DIRS)):
        entry = attempt("/images" + without_prefix)
        if entry is not None:
            return entry

    if without_prefix.startswith("/images/"):
        return attempt(without_prefix[len("/images") :])
    return None


def select_locale_content(group: PageGroup, locale: str) -> Optional[ParsedPage]:
    """Requested locale, then Thai, then English, then whatever exists."""
    for candidate in (locale, *LOCALE_FALLBACKS):
        if candidate in group.locales:
            return group.locales[candidate]
    return next(iter(group.locales.values()), None)


class ContentStore:
    """Process-lifetime cache over the parse and image pipeline artifacts.

    Artifacts are read lazily on first use and kept until the store is
    discarded; a missing file behaves like an empty index or manifest.
    """

    def __init__(
        self,
        content_dir: Path = Path("content/legacy"),
        manifest_path: Optional[Path] = None,
        *,
        extension_fallback: bool = True,
    ) -> None:
        self.content_dir = Path(content_dir)
        self.manifest_path = manifest_path or self.content_dir / "image-manifest.json"
        self.extension_fallback = extension_fallback
        self._index: Optional[LegacyPagesIndex] = None
        self._groups: Dict[str, Optional[PageGroup]] = {}
        self._manifest: Optional[ImageManifest] = None

    @classmethod
    def from_artifacts(
        cls,
        index: LegacyPagesIndex,
        groups: Sequence[PageGroup],
        manifest: Optional[ImageManifest] = None,
        **kwargs,
    ) -> "ContentStore":
        """Build a store over in-memory artifacts instead of files."""
        store = cls(**kwargs)
        store._index = index
        store._groups = {group.group_name: group for group in groups}
        store._manifest = dict(manifest or {})
        return store

    @property
    def index(self) -> LegacyPagesIndex:
        if self._index is None:
            path = self.content_dir / "pages.json"
            self._index = (
                LegacyPagesIndex.from_dict(read_json(path)) if path.exists() else LegacyPagesIndex()
            )
        return self._index

    @property
    def manifest(self) -> ImageManifest:
        if self._manifest is None:
            self._manifest = load_manifest(self.manifest_path)
        return self._manifest

    def load_group(self, group_name: str) -> Optional[PageGroup]:
        if group_name not in self._groups:
            path = self.content_dir / "groups" / f"{group_name}.json"
            self._groups[group_name] = (
                PageGroup.from_dict(read_json(path)) if path.exists() else None
            )
        return self._groups[group_name]

    def is_legacy_path(self, path: str) -> bool:
        return path in self.index.path_to_group

    def get_all_legacy_paths(self) -> List[str]:
        return list(self.index.paths)

    def get_legacy_page_by_path(self, path: str, locale: str) -> Optional[LegacyPage]:
        group_name = self.index.path_to_group.get(path)
        if group_name is None:
            return None
        group = self.load_group(group_name)
        if group is None:
            return None
        content = select_locale_content(group, locale)
        if content is None:
            return None
        return LegacyPage(group=group, content=content)

    def get_responsive_image(self, original_src: str) -> Optional[ImageManifestEntry]:
        return resolve_image(
            self.manifest, original_src, extension_fallback=self.extension_fallback
        )

    def gallery_images(self, images: Sequence[PageImage]) -> List[PageImage]:
        """Content images that have responsive variants, minus site chrome."""
        gallery = []
        for image in images:
            src = image.src.lower()
            if src.endswith(".gif") or any(part in src for part in GALLERY_EXCLUDED_FRAGMENTS):
                continue
            if self.get_responsive_image(image.src) is not None:
                gallery.append(image)
        return gallery

    def render_body_html(self, page: ParsedPage) -> str:
        return clean_body_html(page.body_html, lookup=self.get_responsive_image)
