"""Input/output helpers for capture manifests, composition and panorama storage."""

from .compositor import PanoramaCompositor
from .loader import decode_photo, load_capture_manifest, load_panorama_image
from .storage import list_panoramas, save_panorama

__all__ = [
    "PanoramaCompositor",
    "decode_photo",
    "list_panoramas",
    "load_capture_manifest",
    "load_panorama_image",
    "save_panorama",
]
