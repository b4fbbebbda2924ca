"""Encode, persist and list composed panoramas."""
from __future__ import annotations

from datetime import datetime
import json
from pathlib import Path
import re
from typing import Optional

from loguru import logger

from ..models.panorama import PanoramaBuffer, SavedPanorama, default_panorama_name
from .loader import encode_image

METADATA_SUFFIX = ".json"


def save_panorama(
    buffer: PanoramaBuffer,
    directory: Path,
    name: Optional[str] = None,
    *,
    created_at: Optional[datetime] = None,
    quality: int = 92,
) -> SavedPanorama:
    """Write ``buffer`` as JPEG plus a JSON sidecar and return the saved record."""
    created_at = created_at or datetime.now()
    name = (name or "").strip() or default_panorama_name(created_at)
    directory = directory.expanduser()
    directory.mkdir(parents=True, exist_ok=True)

    image_path = _unique_path(directory, _slugify(name), ".jpg")
    image_path.write_bytes(encode_image(buffer.pixels, quality=quality))

    record = SavedPanorama(
        name=name,
        created_at=created_at,
        source_photo_count=buffer.source_photo_count,
        path=image_path.resolve(),
    )
    sidecar = image_path.with_suffix(METADATA_SUFFIX)
    sidecar.write_text(json.dumps(record.to_dict(), indent=2), encoding="utf-8")
    logger.info("Saved panorama '{}' to {}", name, image_path)
    return record


def list_panoramas(directory: Path) -> list[SavedPanorama]:
    """Return saved panoramas in ``directory``, oldest first.

    Sidecars that cannot be parsed, or whose image is gone, are skipped.
    """
    directory = directory.expanduser()
    if not directory.is_dir():
        return []

    records: list[SavedPanorama] = []
    for sidecar in sorted(directory.glob(f"*{METADATA_SUFFIX}")):
        try:
            payload = json.loads(sidecar.read_text(encoding="utf-8"))
            record = SavedPanorama.from_dict(payload)
        except (OSError, ValueError, KeyError, TypeError):
            logger.warning("Unable to parse panorama metadata file {}", sidecar)
            continue
        image_path = sidecar.with_suffix(".jpg")
        if not image_path.is_file():
            logger.warning("Panorama image missing for metadata file {}", sidecar)
            continue
        record.path = image_path.resolve()
        records.append(record)

    records.sort(key=lambda item: item.created_at)
    return records


def _slugify(name: str) -> str:
    slug = re.sub(r"[^A-Za-z0-9._-]+", "_", name).strip("._")
    return slug or "panorama"


def _unique_path(directory: Path, stem: str, suffix: str) -> Path:
    candidate = directory / f"{stem}{suffix}"
    index = 1
    while candidate.exists():
        candidate = directory / f"{stem}_{index}{suffix}"
        index += 1
    return candidate
