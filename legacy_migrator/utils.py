"""Utility helpers for string normalization and artifact writing."""

from __future__ import annotations

import datetime as dt
import json
import os
import re
from pathlib import Path
from typing import Any

SLUG_PATTERN = re.compile(r"[^a-zA-Z0-9]+")
WHITESPACE_PATTERN = re.compile(r"\s+")


def slugify(value: str, fallback: str = "page") -> str:
    """Collapse every non-alphanumeric run into a single underscore."""
    normalized = SLUG_PATTERN.sub("_", value).strip("_")
    return normalized or fallback


def collapse_whitespace(value: str) -> str:
    return WHITESPACE_PATTERN.sub(" ", value).strip()


def utc_timestamp() -> str:
    """RFC 3339 UTC timestamp without microseconds."""
    return (
        dt.datetime.now(dt.timezone.utc)
        .replace(microsecond=0)
        .isoformat()
        .replace("+00:00", "Z")
    )


def write_json(path: Path, data: Any) -> None:
    """Write JSON next to its destination and move it into place."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
    os.replace(tmp, path)


def read_json(path: Path) -> Any:
    return json.loads(path.read_text(encoding="utf-8"))


def path_within(root: Path, relative: str) -> Path:
    """``root / relative``, refusing anything that resolves outside ``root``."""
    base = root.resolve()
    destination = (base / relative).resolve()
    if not destination.is_relative_to(base):
        raise ValueError(f"{relative} resolves outside {root}")
    return destination
