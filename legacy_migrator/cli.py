"""Command-line entry point for the legacy site migration pipeline."""

from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from pathlib import Path
from typing import Iterable, Sequence

from .config import (
    DEFAULT_BASE_URL,
    DEFAULT_DELAY_MS,
    CrawlConfig,
    ImagePipelineConfig,
    ParseConfig,
)
from .crawler import crawl_site
from .fetcher import Fetcher, build_session
from .images import DownloadReport, download_images, write_crawl_output
from .pages import parse_captured_pages, write_parse_output
from .resolver import ContentStore
from .responsive import run_pipeline

logger = logging.getLogger("legacy_migrator.cli")


def _ensure_command_prefix(argv: Sequence[str], commands: Iterable[str]) -> Sequence[str]:
    if not argv:
        return ("crawl",)
    first = argv[0]
    if first in commands or first in ("-h", "--help"):
        return argv
    return ("crawl", *argv)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )


def _add_crawl_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--output",
        default=Path("scraped-data"),
        type=Path,
        help="Directory where pages, images and manifest.json are written",
    )
    parser.add_argument(
        "--delay",
        type=int,
        default=DEFAULT_DELAY_MS,
        help="Delay between requests in milliseconds (default: 300)",
    )
    parser.add_argument(
        "--max-pages",
        type=int,
        default=None,
        help="Maximum number of pages to visit (useful for testing)",
    )
    parser.add_argument(
        "--base-url",
        default=DEFAULT_BASE_URL,
        help="Start URL of the legacy site",
    )
    parser.add_argument(
        "--no-images",
        action="store_true",
        help="Skip downloading discovered images",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable verbose logging")


def _add_parse_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--pages", default=Path("scraped-data/pages"), type=Path)
    parser.add_argument("--manifest", default=Path("scraped-data/manifest.json"), type=Path)
    parser.add_argument(
        "--output",
        default=Path("content/legacy"),
        type=Path,
        help="Directory for pages.json and groups/",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable verbose logging")


def _add_optimize_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--source", default=Path("scraped-data/images"), type=Path)
    parser.add_argument("--output", default=Path("public/legacy/images"), type=Path)
    parser.add_argument(
        "--manifest", default=Path("content/legacy/image-manifest.json"), type=Path
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=4,
        help="Number of images encoded in parallel",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable verbose logging")


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Crawl a legacy site and turn it into structured content and responsive images.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    _add_crawl_arguments(
        subparsers.add_parser("crawl", help="Crawl the site and capture pages and images")
    )
    _add_parse_arguments(
        subparsers.add_parser("parse", help="Group captured pages into locale-aware content")
    )
    _add_optimize_arguments(
        subparsers.add_parser("optimize", help="Generate responsive image variants")
    )

    image_parser = subparsers.add_parser("resolve-image", help="Look up an image reference")
    image_parser.add_argument("src")
    image_parser.add_argument(
        "--manifest", default=Path("content/legacy/image-manifest.json"), type=Path
    )

    page_parser = subparsers.add_parser("resolve-page", help="Look up a legacy page path")
    page_parser.add_argument("path")
    page_parser.add_argument("--locale", default="th")
    page_parser.add_argument("--content", default=Path("content/legacy"), type=Path)

    argv = list(sys.argv[1:] if argv is None else argv)
    argv = list(_ensure_command_prefix(argv, subparsers.choices.keys()))
    return parser.parse_args(argv)


def _run_crawl(args: argparse.Namespace) -> int:
    _configure_logging(args.verbose)
    config = CrawlConfig(
        output_root=Path(args.output).resolve(),
        base_url=args.base_url,
        delay_ms=args.delay,
        max_pages=args.max_pages,
        download_images=not args.no_images,
    )
    try:
        (config.output_root / "pages").mkdir(parents=True, exist_ok=True)
        (config.output_root / "images").mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        logger.error("Cannot create output directory %s: %s", config.output_root, exc)
        return 1

    logger.info("Output: %s", config.output_root)
    logger.info("Delay: %dms", config.delay_ms)
    if config.max_pages is not None:
        logger.info("Max pages: %d", config.max_pages)

    fetcher = Fetcher(
        build_session(config.user_agent),
        max_retries=config.max_retries,
        base_delay=config.delay_seconds,
        timeout=config.timeout,
    )
    start = time.perf_counter()
    result = crawl_site(config, fetcher)

    report = DownloadReport()
    try:
        if config.download_images:
            logger.info("Downloading %d images...", len(result.image_urls))
            report = download_images(result.image_urls, config.output_root, fetcher)
        manifest = write_crawl_output(config, result, report)
    except OSError as exc:
        logger.error("Failed to write crawl output: %s", exc)
        return 1

    logger.info(
        "Finished in %.2fs (pages: %d, images: %d, errors: %d)",
        time.perf_counter() - start,
        manifest["pages_count"],
        manifest["images_count"],
        manifest["errors_count"],
    )
    return 0


def _run_parse(args: argparse.Namespace) -> int:
    _configure_logging(args.verbose)
    config = ParseConfig(
        pages_dir=args.pages, manifest_path=args.manifest, output_root=args.output
    )
    if not config.pages_dir.is_dir():
        logger.error("Captured pages directory not found: %s", config.pages_dir)
        return 1
    try:
        _pages, groups, index = parse_captured_pages(config)
        write_parse_output(config, groups, index)
    except OSError as exc:
        logger.error("Failed to write parse output: %s", exc)
        return 1
    return 0


def _run_optimize(args: argparse.Namespace) -> int:
    _configure_logging(args.verbose)
    config = ImagePipelineConfig(
        source_dir=args.source,
        output_dir=args.output,
        manifest_path=args.manifest,
        workers=args.workers,
    )
    if not config.source_dir.is_dir():
        logger.error("Source images directory not found: %s", config.source_dir)
        return 1
    try:
        run_pipeline(config)
    except OSError as exc:
        logger.error("Failed to write image output: %s", exc)
        return 1
    return 0


def _print_json(data: object) -> None:
    sys.stdout.write(json.dumps(data, indent=2, ensure_ascii=False) + "\n")
    sys.stdout.flush()


def _run_resolve_image(args: argparse.Namespace) -> int:
    store = ContentStore(manifest_path=args.manifest)
    entry = store.get_responsive_image(args.src)
    if entry is None:
        logger.error("No responsive image for %s", args.src)
        return 1
    _print_json(entry.to_dict())
    return 0


def _run_resolve_page(args: argparse.Namespace) -> int:
    store = ContentStore(content_dir=args.content)
    page = store.get_legacy_page_by_path(args.path, args.locale)
    if page is None:
        logger.error("No legacy page for %s", args.path)
        return 1
    _print_json(
        {
            "groupName": page.group.group_name,
            "canonicalPath": page.group.canonical_path,
            "content": page.content.to_dict(),
        }
    )
    return 0


COMMANDS = {
    "crawl": _run_crawl,
    "parse": _run_parse,
    "optimize": _run_optimize,
    "resolve-image": _run_resolve_image,
    "resolve-page": _run_resolve_page,
}


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    return COMMANDS[args.command](args)


if __name__ == "__main__":
    sys.exit(main())
