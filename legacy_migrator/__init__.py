"""Migrate a hand-built, multi-locale legacy site into structured content.

Stages, each reading the previous stage's artifacts:

- ``crawl``: breadth-first capture of pages and images (``scraped-data/``)
- ``parse``: locale-aware page groups and a flat path index
  (``content/legacy/pages.json`` and ``content/legacy/groups/``)
- ``optimize``: responsive image variants and an alias manifest
  (``public/legacy/images/`` and ``content/legacy/image-manifest.json``)

``ContentStore`` answers lookups against the finished artifacts.
"""

from __future__ import annotations

from .config import CrawlConfig, ImagePipelineConfig, ParseConfig
from .crawler import crawl_site
from .fetcher import FetchError, Fetcher
from .pages import parse_captured_pages
from .resolver import ContentStore, resolve_image
from .responsive import run_pipeline

__all__ = [
    "ContentStore",
    "CrawlConfig",
    "FetchError",
    "Fetcher",
    "ImagePipelineConfig",
    "ParseConfig",
    "crawl_site",
    "parse_captured_pages",
    "resolve_image",
    "run_pipeline",
]
