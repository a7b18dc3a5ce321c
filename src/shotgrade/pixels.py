"""Pixel buffers and the Pillow adapter that produces them.

Decoding RAW files and extracting embedded previews happens upstream. This
module only takes something Pillow can open (or an already decoded image)
and turns it into a bounded-size 8-bit buffer for the analysis engines.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import numpy as np
from numpy.typing import NDArray
from PIL import Image

# Long-edge bounds used by the engines
STATS_MAX_DIM = 800
COMPOSITION_MAX_DIM = 600
QUICK_MAX_DIM = 400


@dataclass(frozen=True)
class PixelBuffer:
    """Raw interleaved 8-bit pixels of known geometry."""

    width: int
    height: int
    channels: int
    data: bytes

    @property
    def is_valid(self) -> bool:
        """True when geometry is positive and matches the data length."""
        return (
            self.width > 0
            and self.height > 0
            and self.channels > 0
            and self.data is not None
            and len(self.data) == self.width * self.height * self.channels
        )

    def to_array(self) -> NDArray[np.uint8]:
        """Return pixels as an (height, width, channels) uint8 array."""
        arr = np.frombuffer(self.data, dtype=np.uint8)
        return arr.reshape(self.height, self.width, self.channels)

    @classmethod
    def from_array(cls, arr: NDArray) -> PixelBuffer:
        """Build a buffer from an (h, w) or (h, w, c) array."""
        arr = np.asarray(arr)
        if arr.ndim == 2:
            arr = arr[:, :, np.newaxis]
        arr = np.ascontiguousarray(np.clip(arr, 0, 255).astype(np.uint8))
        h, w, c = arr.shape
        return cls(width=w, height=h, channels=c, data=arr.tobytes())


# EXIF orientation value -> transpose that brings the image upright
_ORIENTATION_TRANSPOSE = {
    2: Image.Transpose.FLIP_LEFT_RIGHT,
    3: Image.Transpose.ROTATE_180,
    4: Image.Transpose.FLIP_TOP_BOTTOM,
    5: Image.Transpose.TRANSPOSE,
    6: Image.Transpose.ROTATE_270,
    7: Image.Transpose.TRANSVERSE,
    8: Image.Transpose.ROTATE_90,
}
EXIF_ORIENTATION = 274


def auto_orient(img: Image.Image) -> Image.Image:
    """Apply the EXIF orientation tag so region positions match the scene.

    Untagged images, and orientation 1, come back unchanged.
    """
    try:
        orientation = img.getexif().get(EXIF_ORIENTATION)
    except (AttributeError, KeyError, IndexError):
        return img

    method = _ORIENTATION_TRANSPOSE.get(orientation)
    return img.transpose(method) if method is not None else img


def load_image(path: Path | str) -> Image.Image:
    """Open an image file and apply EXIF orientation."""
    with Image.open(path) as img:
        img.load()
        return auto_orient(img)


def from_image(img: Image.Image) -> PixelBuffer:
    """Convert a PIL image to an RGB or grayscale PixelBuffer."""
    if img.mode not in ("RGB", "L"):
        img = img.convert("RGB")
    return PixelBuffer.from_array(np.array(img, dtype=np.uint8))


def to_image(buffer: PixelBuffer) -> Image.Image:
    """Convert a PixelBuffer back to a PIL image (alpha is dropped)."""
    arr = buffer.to_array()
    if buffer.channels < 3:
        return Image.fromarray(np.ascontiguousarray(arr[:, :, 0]))
    return Image.fromarray(np.ascontiguousarray(arr[:, :, :3]))


def prepare(
    source: PixelBuffer | Image.Image,
    max_dim: int = STATS_MAX_DIM,
    grayscale: bool = False,
) -> PixelBuffer:
    """Resize to fit within max_dim on the long edge, optionally to luma.

    Never upscales. Aspect ratio is preserved.
    """
    img = to_image(source) if isinstance(source, PixelBuffer) else source

    if grayscale:
        if img.mode != "L":
            img = img.convert("RGB").convert("L")
    elif img.mode not in ("RGB", "L"):
        img = img.convert("RGB")

    current_max = max(img.size)
    if current_max > max_dim:
        scale = max_dim / current_max
        new_size = (
            max(1, round(img.size[0] * scale)),
            max(1, round(img.size[1] * scale)),
        )
        img = img.resize(new_size, Image.Resampling.LANCZOS)

    return from_image(img)
