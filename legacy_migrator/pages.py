"""Grouping of parsed pages into locale-aware groups and the path index."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterable, List, Sequence, Tuple

from .config import SKIPPED_PAGE_DIRS, ParseConfig
from .content import DEFAULT_LOCALE, is_content_page, parse_page
from .models import LegacyPagesIndex, PageGroup, PageImage, ParsedPage
from .urls import extract_pathname
from .utils import read_json, utc_timestamp, write_json

logger = logging.getLogger("legacy_migrator")

PAGE_SUFFIXES = {".htm", ".html", ".php"}


def choose_canonical_path(pages: Sequence[ParsedPage]) -> str:
    """Shortest Thai URL when one exists, otherwise the shortest URL overall."""
    thai = [page for page in pages if page.locale == DEFAULT_LOCALE]
    candidates = thai or list(pages)
    return min(candidates, key=lambda page: len(page.url_path)).url_path


def _split_keywords(keywords: str) -> List[str]:
    return [keyword.strip() for keyword in keywords.split(",") if keyword.strip()]


def build_group(group_name: str, pages: Sequence[ParsedPage]) -> PageGroup:
    """Merge locale variants into one group."""
    locales: Dict[str, ParsedPage] = {}
    for page in sorted(pages, key=lambda item: len(item.url_path), reverse=True):
        # Shorter paths win a locale slot, mirroring canonical selection.
        locales[page.locale] = page

    keywords: Dict[str, None] = {}
    images: List[PageImage] = []
    seen_images = set()
    for page in pages:
        for keyword in _split_keywords(page.keywords):
            keywords.setdefault(keyword, None)
        for image in page.images:
            if image.src not in seen_images:
                seen_images.add(image.src)
                images.append(image)

    return PageGroup(
        group_name=group_name,
        url_paths=[page.url_path for page in pages],
        locales={locale: locales[locale] for locale in sorted(locales)},
        canonical_path=choose_canonical_path(pages),
        keywords=list(keywords),
        images=images,
    )


def group_pages(pages: Iterable[ParsedPage]) -> List[PageGroup]:
    buckets: Dict[str, List[ParsedPage]] = {}
    for page in pages:
        buckets.setdefault(page.group_name, []).append(page)
    return [build_group(name, members) for name, members in buckets.items()]


def build_index(groups: Sequence[PageGroup]) -> LegacyPagesIndex:
    path_to_group: Dict[str, str] = {}
    for group in groups:
        for url_path in group.url_paths:
            path_to_group[url_path] = group.group_name
    return LegacyPagesIndex(
        path_to_group=path_to_group,
        groups=sorted(group.group_name for group in groups),
        paths=sorted(path_to_group),
        generated_at=utc_timestamp(),
        total_pages=sum(len(group.url_paths) for group in groups),
    )


def collect_page_files(pages_dir: Path) -> List[str]:
    """Relative POSIX paths of every captured page below ``pages_dir``."""
    if not pages_dir.is_dir():
        return []
    files: List[str] = []
    for path in sorted(pages_dir.rglob("*")):
        if not path.is_file() or path.suffix.lower() not in PAGE_SUFFIXES:
            continue
        relative = path.relative_to(pages_dir)
        if any(part in SKIPPED_PAGE_DIRS for part in relative.parts[:-1]):
            continue
        files.append(relative.as_posix())
    return files


def load_url_mapping(manifest_path: Path) -> Dict[str, str]:
    """Map captured file paths (relative to ``pages/``) to their URL paths."""
    if not manifest_path.exists():
        return {}
    mapping: Dict[str, str] = {}
    for entry in read_json(manifest_path).get("pages", []):
        url_path = extract_pathname(entry.get("url", ""))
        file_path = entry.get("file", "")
        if not url_path or not file_path:
            continue
        mapping[file_path[len("pages/"):] if file_path.startswith("pages/") else file_path] = url_path
    return mapping


def parse_captured_pages(
    config: ParseConfig,
) -> Tuple[List[ParsedPage], List[PageGroup], LegacyPagesIndex]:
    """Parse every captured page, drop stubs, and group what remains."""
    files = collect_page_files(config.pages_dir)
    url_mapping = load_url_mapping(config.manifest_path)
    logger.info("Found %d page files", len(files))

    parsed: List[ParsedPage] = []
    total = len(files)
    for index, file_path in enumerate(files, start=1):
        pct = round(index / total * 100) if total else 0
        logger.debug("[%d/%d] %d%% %s", index, total, pct, file_path)
        html = (config.pages_dir / file_path).read_text(encoding="utf-8", errors="replace")
        page = parse_page(html, file_path, url_mapping.get(file_path) or f"/{file_path}")
        if not is_content_page(page, config.min_body_chars):
            logger.debug("Skipped (no content): %s", file_path)
            continue
        parsed.append(page)

    groups = group_pages(parsed)
    index = build_index(groups)
    logger.info("Parsed %d pages into %d groups", len(parsed), len(groups))
    return parsed, groups, index


def write_parse_output(
    config: ParseConfig,
    groups: Sequence[PageGroup],
    index: LegacyPagesIndex,
) -> Path:
    config.groups_dir.mkdir(parents=True, exist_ok=True)
    current = {group.group_name for group in groups}
    for stale in sorted(config.groups_dir.glob("*.json")):
        if stale.stem not in current:
            logger.debug("Removing stale group file: %s", stale)
            stale.unlink()
    for group in groups:
        write_json(config.groups_dir / f"{group.group_name}.json", group.to_dict())
    write_json(config.index_path, index.to_dict())
    logger.info("Index saved: %s", config.index_path)
    return config.index_path
