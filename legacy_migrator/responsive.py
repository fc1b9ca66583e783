"""Responsive image variants and the multi-alias image manifest."""

from __future__ import annotations

import logging
import posixpath
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple
from urllib.parse import quote

from PIL import Image, UnidentifiedImageError

from .config import OBSOLETE_IMAGE_PREFIX, ImagePipelineConfig
from .models import ImageManifest, ImageManifestEntry, ImageVariant
from .utils import read_json, write_json

logger = logging.getLogger("legacy_migrator")

SOURCE_SUFFIXES = {".jpg", ".jpeg", ".png", ".gif", ".webp", ".bmp", ".tif", ".tiff"}
# Characters left alone by JavaScript's encodeURIComponent.
_URI_COMPONENT_SAFE = "!'()*-._~"


@dataclass
class ImageResult:
    """Outcome of processing one source image."""

    relative_path: str
    status: str
    entry: Optional[ImageManifestEntry] = None
    error: str = ""


@dataclass
class PipelineStats:
    processed: int = 0
    skipped: int = 0
    errors: int = 0


def enumerate_sources(source_dir: Path) -> List[str]:
    """Relative POSIX paths of every raster image below ``source_dir``."""
    if not source_dir.is_dir():
        return []
    return [
        path.relative_to(source_dir).as_posix()
        for path in sorted(source_dir.rglob("*"))
        if path.is_file() and path.suffix.lower() in SOURCE_SUFFIXES
    ]


def plan_widths(ladder: Iterable[int], natural_width: int) -> List[int]:
    """Ascending target widths, clamped so nothing is ever enlarged."""
    return sorted({min(width, natural_width) for width in ladder if width > 0})


def variant_paths(relative_path: str, width: int) -> Tuple[str, str]:
    """Output paths (relative to the output dir) of the WebP and fallback files."""
    directory = posixpath.dirname(relative_path)
    stem, ext = posixpath.splitext(posixpath.basename(relative_path))
    fallback_ext = ".png" if ext.lower() == ".png" else ".jpg"
    webp = posixpath.join(directory, f"{stem}-{width}w.webp")
    fallback = posixpath.join(directory, f"{stem}-{width}w{fallback_ext}")
    return webp, fallback


def build_entry(relative_path: str, widths: Sequence[int], public_prefix: str) -> ImageManifestEntry:
    prefix = public_prefix.rstrip("/")
    variants = []
    for width in widths:
        webp, fallback = variant_paths(relative_path, width)
        variants.append(
            ImageVariant(width=width, webp=f"{prefix}/{webp}", fallback=f"{prefix}/{fallback}")
        )
    return ImageManifestEntry(
        original=f"/{relative_path}",
        variants=tuple(variants),
        srcset=", ".join(f"{variant.webp} {variant.width}w" for variant in variants),
        fallback_src=variants[-1].fallback if variants else "",
    )


def encode_uri_path(relative_path: str) -> str:
    return "/".join(quote(segment, safe=_URI_COMPONENT_SAFE) for segment in relative_path.split("/"))


def alias_keys(relative_path: str, obsolete_prefix: str = OBSOLETE_IMAGE_PREFIX) -> List[str]:
    """Every spelling the legacy site may have used for this image."""
    spellings = [relative_path]
    encoded = encode_uri_path(relative_path)
    if encoded != relative_path:
        spellings.append(encoded)
    keys: List[str] = []
    for spelling in spellings:
        keys.append(f"/{spelling}")
        if obsolete_prefix:
            keys.append(f"/{obsolete_prefix}/{spelling}")
    return keys


def register_aliases(manifest: ImageManifest, relative_path: str, entry: ImageManifestEntry) -> None:
    for key in alias_keys(relative_path):
        manifest[key] = entry


def read_natural_width(source: Path) -> int:
    """Width from the image header; pixel data is not decoded."""
    with Image.open(source) as image:
        return image.width


def _resize(image: Image.Image, width: int) -> Image.Image:
    if width >= image.width:
        return image.copy()
    height = max(1, round(image.height * width / image.width))
    return image.resize((width, height), Image.Resampling.LANCZOS)


def _flatten(image: Image.Image) -> Image.Image:
    """RGB copy with transparency composited onto white, for JPEG output."""
    if image.mode in ("RGBA", "LA") or (image.mode == "P" and "transparency" in image.info):
        rgba = image.convert("RGBA")
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.split()[-1])
        return background
    return image.convert("RGB")


def encode_variants(
    source: Path,
    relative_path: str,
    widths: Sequence[int],
    config: ImagePipelineConfig,
) -> None:
    with Image.open(source) as raw_image:
        raw_image.load()
        image = raw_image.convert("RGBA") if raw_image.mode in ("P", "LA") else raw_image.copy()

    for width in widths:
        webp_rel, fallback_rel = variant_paths(relative_path, width)
        webp_path = config.output_dir / webp_rel
        fallback_path = config.output_dir / fallback_rel
        webp_path.parent.mkdir(parents=True, exist_ok=True)

        resized = _resize(image, width)
        if resized.mode not in ("RGB", "RGBA"):
            resized = resized.convert("RGB")
        resized.save(webp_path, "WEBP", quality=config.webp_quality)
        if fallback_path.suffix == ".png":
            resized.save(fallback_path, "PNG", optimize=True)
        else:
            _flatten(resized).save(
                fallback_path, "JPEG", quality=config.fallback_quality, optimize=True
            )


def process_image(relative_path: str, config: ImagePipelineConfig) -> ImageResult:
    """Encode one source image unless its largest WebP already exists.

    The manifest entry is rebuilt from expected output paths either way.
    """
    source = config.source_dir / relative_path
    try:
        natural_width = read_natural_width(source)
    except (OSError, UnidentifiedImageError, Image.DecompressionBombError) as exc:
        logger.warning("Error processing %s: %s", relative_path, exc)
        return ImageResult(relative_path, "error", error=str(exc))

    widths = plan_widths(config.widths, natural_width)
    if not widths:
        return ImageResult(relative_path, "error", error="image has no width")
    entry = build_entry(relative_path, widths, config.public_prefix)

    largest_webp, _ = variant_paths(relative_path, widths[-1])
    if (config.output_dir / largest_webp).exists():
        return ImageResult(relative_path, "skipped", entry=entry)

    try:
        encode_variants(source, relative_path, widths, config)
    except (OSError, UnidentifiedImageError, Image.DecompressionBombError, ValueError) as exc:
        logger.warning("Error processing %s: %s", relative_path, exc)
        return ImageResult(relative_path, "error", error=str(exc))
    return ImageResult(relative_path, "processed", entry=entry)


def build_manifest(results: Iterable[ImageResult]) -> Tuple[ImageManifest, PipelineStats]:
    manifest: ImageManifest = {}
    stats = PipelineStats()
    for result in sorted(results, key=lambda item: item.relative_path):
        if result.status == "error" or result.entry is None:
            stats.errors += 1
            continue
        if result.status == "skipped":
            stats.skipped += 1
        else:
            stats.processed += 1
        register_aliases(manifest, result.relative_path, result.entry)
    return manifest, stats


def run_pipeline(config: ImagePipelineConfig) -> Tuple[ImageManifest, PipelineStats]:
    """Process every source image on a bounded worker pool and write the manifest."""
    sources = enumerate_sources(config.source_dir)
    logger.info("Found %d images to process", len(sources))
    logger.info("Sizes: %s", ", ".join(f"{width}w" for width in config.widths))
    config.output_dir.mkdir(parents=True, exist_ok=True)

    results: List[ImageResult] = []
    with ThreadPoolExecutor(max_workers=max(1, config.workers)) as executor:
        for index, result in enumerate(
            executor.map(lambda rel: process_image(rel, config), sources), start=1
        ):
            pct = round(index / len(sources) * 100)
            logger.debug(
                "[%d/%d] %d%% %s (%s)",
                index,
                len(sources),
                pct,
                result.relative_path,
                result.status,
            )
            results.append(result)

    manifest, stats = build_manifest(results)
    write_manifest(config.manifest_path, manifest)
    logger.info(
        "Processed: %d, skipped: %d, errors: %d", stats.processed, stats.skipped, stats.errors
    )
    return manifest, stats


def write_manifest(path: Path, manifest: ImageManifest) -> None:
    write_json(path, {key: manifest[key].to_dict() for key in sorted(manifest)})


def load_manifest(path: Path) -> ImageManifest:
    if not path.exists():
        return {}
    manifest: ImageManifest = {}
    interned: Dict[ImageManifestEntry, ImageManifestEntry] = {}
    for key, value in read_json(path).items():
        entry = ImageManifestEntry.from_dict(value)
        # Aliases of one image share a single entry object again.
        manifest[key] = interned.setdefault(entry, entry)
    return manifest
