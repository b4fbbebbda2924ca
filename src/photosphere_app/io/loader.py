"""File loading and decoding utilities."""
from __future__ import annotations

import csv
import math
from pathlib import Path
from typing import Callable, Optional

import cv2
import numpy as np
from loguru import logger

from ..errors import CaptureManifestError, DecodeError
from ..models.capture_session import CapturedPhoto, CaptureProgressTracker
from ..models.orientation import OrientationSample

MANIFEST_COLUMNS = ("filename", "alpha", "beta", "gamma")


def decode_image_bytes(data: bytes) -> Optional[np.ndarray]:
    """Decode encoded image bytes into an RGB uint8 array, or ``None`` if unreadable."""
    if not data:
        return None
    buffer = np.frombuffer(data, dtype=np.uint8)
    image = cv2.imdecode(buffer, cv2.IMREAD_COLOR)
    if image is None:
        return None
    return cv2.cvtColor(image, cv2.COLOR_BGR2RGB)


def decode_photo(photo: CapturedPhoto) -> np.ndarray:
    """Return RGB pixels for a captured photo.

    Raises
    ------
    DecodeError
        If the photo has no usable pixels and its bytes cannot be decoded.
    """
    if photo.pixels is not None:
        pixels = np.asarray(photo.pixels)
        if pixels.ndim != 3 or pixels.shape[2] != 3 or pixels.size == 0:
            raise DecodeError(photo.id, f"unsupported pixel array shape {pixels.shape}")
        return np.ascontiguousarray(pixels.astype(np.uint8, copy=False))

    image = decode_image_bytes(photo.data)
    if image is None:
        raise DecodeError(photo.id, "image data is empty or corrupt")
    logger.debug("Decoded photo {} with shape {}", photo.id, image.shape)
    return image


def encode_image(image: np.ndarray, quality: int = 92) -> bytes:
    """Encode an RGB array as JPEG bytes."""
    ok, encoded = cv2.imencode(
        ".jpg",
        cv2.cvtColor(np.ascontiguousarray(image), cv2.COLOR_RGB2BGR),
        [int(cv2.IMWRITE_JPEG_QUALITY), int(quality)],
    )
    if not ok:
        raise ValueError("Unable to encode image as JPEG")
    return encoded.tobytes()


def load_panorama_image(path: Path) -> np.ndarray:
    """Load an existing equirectangular panorama as an RGB uint8 array."""
    image = cv2.imread(str(path), cv2.IMREAD_COLOR)
    if image is None:
        raise FileNotFoundError(f"Unable to read panorama image: {path}")
    image = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)
    logger.debug("Loaded panorama image {} with shape {}", path, image.shape)
    return image


def read_photo_bytes(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except OSError as exc:
        raise FileNotFoundError(f"Unable to read photo: {path}") from exc


def load_capture_manifest(
    path: Path,
    tracker: Optional[CaptureProgressTracker] = None,
    *,
    on_photo: Optional[Callable[[CapturedPhoto], None]] = None,
) -> CaptureProgressTracker:
    """Replay a CSV capture manifest into a tracker.

    The manifest has a ``filename, alpha, beta, gamma`` header; file names are
    resolved relative to the manifest. Empty angle cells mean the sensor did
    not report that component. Every row is validated and every photo read
    before the first one is added, so a bad manifest leaves the tracker untouched.
    Photos are added in row order.

    Raises
    ------
    FileNotFoundError
        If the manifest or a referenced photo is missing.
    CaptureManifestError
        If the header is incomplete, a row has no file name, or an angle is not numeric.
    """
    manifest = path.expanduser().resolve()
    if not manifest.is_file():
        raise FileNotFoundError(f"Capture manifest does not exist: {manifest}")

    entries: list[tuple[bytes, OrientationSample]] = []
    with manifest.open("r", encoding="utf-8", newline="") as stream:
        reader = csv.DictReader(stream)
        header = {name.strip() for name in (reader.fieldnames or [])}
        missing = [column for column in MANIFEST_COLUMNS if column not in header]
        if missing:
            raise CaptureManifestError(
                f"{manifest.name} is missing required columns: {', '.join(missing)}"
            )

        for line_no, row in enumerate(reader, start=2):
            row = {(key or "").strip(): value for key, value in row.items()}
            image_name = (row.get("filename") or "").strip()
            if not image_name:
                raise CaptureManifestError(f"{manifest.name}:{line_no} has empty filename")
            image_path = manifest.parent / image_name
            if not image_path.is_file():
                raise FileNotFoundError(
                    f"{manifest.name}:{line_no} references missing image {image_path}"
                )
            orientation = OrientationSample(
                alpha=_to_optional_float(row, "alpha", manifest, line_no),
                beta=_to_optional_float(row, "beta", manifest, line_no),
                gamma=_to_optional_float(row, "gamma", manifest, line_no),
            )
            entries.append((read_photo_bytes(image_path), orientation))

    tracker = tracker or CaptureProgressTracker()
    for data, orientation in entries:
        photo = tracker.capture(data, orientation)
        if on_photo is not None:
            on_photo(photo)

    logger.info("Loaded capture manifest {} with {} photos", manifest, tracker.completed)
    return tracker


def _to_optional_float(row: dict[str, str], key: str, source: Path, line_no: int) -> Optional[float]:
    raw = (row.get(key) or "").strip()
    if not raw:
        return None
    try:
        value = float(raw)
    except ValueError as exc:
        raise CaptureManifestError(f"{source.name}:{line_no} has invalid float for {key}: {raw}") from exc
    if not math.isfinite(value):
        raise CaptureManifestError(f"{source.name}:{line_no} has non-finite value for {key}: {raw}")
    return value
