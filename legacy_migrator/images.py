"""Image downloading, validation, and crawl output persistence."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from filetype import guess

from .config import CrawlConfig
from .fetcher import FetchError, Fetcher
from .models import CrawlResult
from .urls import image_local_path
from .utils import path_within, utc_timestamp, write_json

logger = logging.getLogger("legacy_migrator")

MAX_IMAGE_BYTES = 10 * 1024 * 1024
ALLOWED_IMAGE_TYPES = {"png", "jpg", "jpeg", "gif", "webp", "bmp", "tiff", "ico", "svg"}


def detect_image_format(data: bytes) -> Optional[str]:
    """Detect image type using filetype; returns lowercase extension."""
    kind = guess(data)
    if kind and kind.mime.startswith("image/"):
        ext = kind.extension.lower()
        if ext == "jpeg":
            return "jpg"
        return ext
    return None


def infer_image_extension(content_type: Optional[str], data: bytes) -> Optional[str]:
    """Guess an image file extension from the file signature or HTTP metadata."""
    detected = detect_image_format(data)
    if detected:
        return detected
    if not content_type:
        return None
    parts = content_type.split(";")[0].split("/")
    if len(parts) == 2 and parts[0].strip().lower() == "image":
        ext = parts[1].strip().lower()
        if ext == "jpeg":
            ext = "jpg"
        elif ext in ("svg+xml", "x-icon", "vnd.microsoft.icon"):
            ext = "svg" if ext == "svg+xml" else "ico"
        return ext
    return None


@dataclass
class DownloadReport:
    """Outcome of downloading the crawl's image set."""

    downloaded: List[Dict[str, str]] = field(default_factory=list)
    errors: List[Dict[str, str]] = field(default_factory=list)


def download_images(
    image_urls: Iterable[str],
    output_root: Path,
    fetcher: Fetcher,
) -> DownloadReport:
    """Fetch every discovered image and mirror it under ``images/``."""
    report = DownloadReport()
    urls = sorted(set(image_urls))
    total = len(urls)
    for index, url in enumerate(urls, start=1):
        local_path = image_local_path(url)
        pct = round(index / total * 100) if total else 0
        logger.debug("[%d/%d] %d%% Downloading image: %s", index, total, pct, url)
        try:
            destination = path_within(output_root, local_path)
        except ValueError as exc:
            logger.warning("Skipping %s: %s", url, exc)
            report.errors.append({"url": url, "error": str(exc)})
            continue
        try:
            data, content_type = fetcher.fetch_binary_with_type(url)
        except FetchError as exc:
            logger.warning("Failed to download image %s: %s", url, exc)
            report.errors.append({"url": url, "error": str(exc)})
            continue

        if len(data) > MAX_IMAGE_BYTES:
            message = f"image larger than {MAX_IMAGE_BYTES} bytes"
            logger.warning("Skipping %s: %s", url, message)
            report.errors.append({"url": url, "error": message})
            continue
        extension = infer_image_extension(content_type, data)
        if not extension or extension not in ALLOWED_IMAGE_TYPES:
            message = f"unsupported image type (Content-Type={content_type or 'unknown'})"
            logger.warning("Skipping %s: %s", url, message)
            report.errors.append({"url": url, "error": message})
            continue

        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_bytes(data)
        report.downloaded.append({"url": url, "file": local_path})
    return report


def write_crawl_output(
    config: CrawlConfig,
    result: CrawlResult,
    report: Optional[DownloadReport] = None,
) -> Dict[str, object]:
    """Persist pages, ``manifest.json`` and, when needed, ``errors.log``.

    Filesystem errors propagate; every later stage depends on these files.
    """
    output_root = config.output_root
    report = report or DownloadReport()

    page_entries: List[Dict[str, str]] = []
    page_errors: List[Dict[str, str]] = []
    for page in result.pages:
        try:
            destination = path_within(output_root, page.local_path)
        except ValueError as exc:
            logger.warning("Skipping %s: %s", page.url, exc)
            page_errors.append({"url": page.url, "error": str(exc)})
            continue
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_text(page.html, encoding="utf-8")
        page_entries.append({"url": page.url, "file": page.local_path})
        logger.debug("Saved: %s", page.local_path)

    all_errors = [error.to_dict() for error in result.errors] + page_errors + report.errors
    manifest: Dict[str, object] = {
        "scraped_at": utc_timestamp(),
        "base_url": config.base_url,
        "pages_count": len(page_entries),
        "images_count": len(report.downloaded),
        "errors_count": len(all_errors),
        "pages": page_entries,
        "images": report.downloaded,
        "errors": all_errors,
    }
    write_json(output_root / "manifest.json", manifest)
    logger.info("Manifest saved: %s", output_root / "manifest.json")

    error_log = output_root / "errors.log"
    if all_errors:
        lines = [f"{error['url']} — {error['error']}" for error in all_errors]
        error_log.write_text("\n".join(lines) + "\n", encoding="utf-8")
        logger.warning("%d errors logged to %s", len(all_errors), error_log)
    return manifest
