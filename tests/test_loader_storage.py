from __future__ import annotations

import csv
import json
from datetime import datetime
from pathlib import Path

import cv2
import numpy as np
import pytest

from photosphere_app import cli
from photosphere_app.errors import CaptureManifestError, DecodeError
from photosphere_app.io.loader import (
    decode_photo,
    encode_image,
    load_capture_manifest,
    load_panorama_image,
)
from photosphere_app.io.storage import list_panoramas, save_panorama
from photosphere_app.models.capture_session import CapturedPhoto, CaptureProgressTracker
from photosphere_app.models.orientation import OrientationSample
from photosphere_app.models.panorama import PanoramaBuffer


def _write_test_photo(path: Path, width: int = 64, height: int = 48) -> None:
    image = np.zeros((height, width, 3), dtype=np.uint8)
    image[:, :, 1] = 127
    ok = cv2.imwrite(str(path), image)
    if not ok:
        raise RuntimeError(f"Failed to create test photo at {path}")


def _write_manifest(path: Path, rows: list[dict[str, str]], fieldnames=("filename", "alpha", "beta", "gamma")) -> None:
    with path.open("w", encoding="utf-8", newline="") as stream:
        writer = csv.DictWriter(stream, fieldnames=list(fieldnames))
        writer.writeheader()
        for row in rows:
            writer.writerow(row)


def _capture_dir(tmp_path: Path, count: int = 4) -> Path:
    rows = []
    for index in range(count):
        name = f"photo_{index:02d}.png"
        _write_test_photo(tmp_path / name)
        rows.append({"filename": name, "alpha": str(index * 90.0), "beta": "90", "gamma": ""})
    manifest = tmp_path / "capture.csv"
    _write_manifest(manifest, rows)
    return manifest


def test_load_capture_manifest_replays_photos_in_order(tmp_path: Path):
    manifest = _capture_dir(tmp_path, count=4)
    tracker = load_capture_manifest(manifest)
    photos = tracker.snapshot()
    assert tracker.completed == 4
    assert [photo.orientation.alpha for photo in photos] == [0.0, 90.0, 180.0, 270.0]
    assert photos[0].orientation.gamma is None
    assert photos[0].orientation.beta == 90.0
    assert decode_photo(photos[0]).shape == (48, 64, 3)


def test_manifest_missing_columns(tmp_path: Path):
    manifest = tmp_path / "capture.csv"
    _write_manifest(manifest, [], fieldnames=("filename", "alpha"))
    with pytest.raises(CaptureManifestError, match="beta, gamma"):
        load_capture_manifest(manifest)


def test_manifest_invalid_angle_reports_line(tmp_path: Path):
    _write_test_photo(tmp_path / "a.png")
    manifest = tmp_path / "capture.csv"
    _write_manifest(manifest, [{"filename": "a.png", "alpha": "north", "beta": "0", "gamma": "0"}])
    with pytest.raises(CaptureManifestError, match="capture.csv:2"):
        load_capture_manifest(manifest)


def test_failed_manifest_leaves_tracker_empty(tmp_path: Path):
    for name in ("a.png", "b.png", "c.png"):
        _write_test_photo(tmp_path / name)
    manifest = tmp_path / "capture.csv"
    _write_manifest(
        manifest,
        [
            {"filename": "a.png", "alpha": "0", "beta": "0", "gamma": "0"},
            {"filename": "b.png", "alpha": "90", "beta": "0", "gamma": "0"},
            {"filename": "c.png", "alpha": "oops", "beta": "0", "gamma": "0"},
        ],
    )
    tracker = CaptureProgressTracker()
    added = []
    with pytest.raises(CaptureManifestError, match="capture.csv:4"):
        load_capture_manifest(manifest, tracker, on_photo=added.append)
    assert tracker.completed == 0
    assert tracker.snapshot() == ()
    assert added == []


def test_manifest_missing_photo(tmp_path: Path):
    manifest = tmp_path / "capture.csv"
    _write_manifest(manifest, [{"filename": "ghost.png", "alpha": "0", "beta": "0", "gamma": "0"}])
    with pytest.raises(FileNotFoundError):
        load_capture_manifest(manifest)


def test_decode_photo_rejects_corrupt_bytes():
    photo = CapturedPhoto(id=7, data=b"\xff\xd8garbage", orientation=OrientationSample())
    with pytest.raises(DecodeError) as excinfo:
        decode_photo(photo)
    assert excinfo.value.photo_id == 7


def test_decode_photo_prefers_pixels():
    pixels = np.full((4, 6, 3), 9, dtype=np.uint8)
    photo = CapturedPhoto(id=1, data=b"", orientation=OrientationSample(), pixels=pixels)
    assert np.array_equal(decode_photo(photo), pixels)


def test_save_and_list_panoramas(tmp_path: Path):
    pixels = np.zeros((64, 128, 3), dtype=np.uint8)
    pixels[:, :64] = (200, 10, 10)
    buffer = PanoramaBuffer(pixels=pixels, source_photo_count=6)

    first = save_panorama(buffer, tmp_path, "Beach", created_at=datetime(2024, 5, 1, 12, 0, 0))
    second = save_panorama(buffer, tmp_path, "  ", created_at=datetime(2024, 4, 1, 9, 30, 0))
    third = save_panorama(buffer, tmp_path, "Beach", created_at=datetime(2024, 6, 1, 8, 0, 0))

    assert first.path is not None and first.path.is_file()
    assert second.name == "Panorama 2024-04-01 09:30:00"
    assert third.path != first.path

    sidecar = json.loads(first.path.with_suffix(".json").read_text(encoding="utf-8"))
    assert sidecar["source_photo_count"] == 6
    assert sidecar["created_at"] == "2024-05-01T12:00:00"

    records = list_panoramas(tmp_path)
    assert [record.name for record in records] == [second.name, "Beach", "Beach"]
    image = load_panorama_image(records[1].path)
    assert image.shape == (64, 128, 3)


def test_list_panoramas_skips_broken_metadata(tmp_path: Path):
    (tmp_path / "broken.json").write_text("{not json", encoding="utf-8")
    (tmp_path / "orphan.json").write_text(
        json.dumps({"name": "x", "created_at": "2024-01-01T00:00:00", "source_photo_count": 3}),
        encoding="utf-8",
    )
    assert list_panoramas(tmp_path) == []
    assert list_panoramas(tmp_path / "missing") == []


def test_encode_image_produces_jpeg():
    data = encode_image(np.zeros((8, 8, 3), dtype=np.uint8))
    assert data[:2] == b"\xff\xd8"


def test_load_panorama_image_missing(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        load_panorama_image(tmp_path / "nope.jpg")


def test_cli_composes_and_saves(tmp_path: Path, capsys):
    capture = tmp_path / "capture"
    capture.mkdir()
    manifest = _capture_dir(capture, count=6)
    output = tmp_path / "library"
    exit_code = cli.main([str(manifest), "-o", str(output), "-n", "Courtyard"])
    assert exit_code == 0
    records = list_panoramas(output)
    assert len(records) == 1
    assert records[0].name == "Courtyard"
    assert records[0].source_photo_count == 6
    assert load_panorama_image(records[0].path).shape == (2048, 4096, 3)
    assert str(records[0].path) in capsys.readouterr().out


def test_cli_fails_with_too_few_photos(tmp_path: Path):
    manifest = _capture_dir(tmp_path, count=2)
    assert cli.main([str(manifest), "-o", str(tmp_path / "out")]) == 1
    assert not (tmp_path / "out").exists()
