"""Shared helpers for the analysis engines."""

from __future__ import annotations

import math

import numpy as np
from numpy.typing import NDArray

from shotgrade.pixels import PixelBuffer


def round_half_up(value: float, ndigits: int = 0) -> float:
    """Round with ties going up, unlike Python's banker's rounding.

    Reported values (percentages, rounded scores) are defined with this
    rounding; round() would turn 0.5 into 0 and 2.5 into 2.
    """
    factor = 10**ndigits
    return math.floor(value * factor + 0.5) / factor


def round_int(value: float) -> int:
    """round_half_up() to an int."""
    return int(math.floor(value + 0.5))


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def gray_array(buffer: PixelBuffer) -> NDArray[np.float64]:
    """Return a (h, w) float64 luma array.

    Single-channel buffers are used as is. Color buffers are converted with
    ITU-R 601 weights, rounded to 8 bits like Pillow's "L" conversion.
    """
    arr = buffer.to_array()
    if buffer.channels < 3:
        return arr[:, :, 0].astype(np.float64)
    rgb = arr[:, :, :3].astype(np.float64)
    luma = rgb[:, :, 0] * 0.299 + rgb[:, :, 1] * 0.587 + rgb[:, :, 2] * 0.114
    return np.floor(luma + 0.5)


def rgb_array(buffer: PixelBuffer) -> NDArray[np.int64]:
    """Return a (h, w, 3) int64 array; gray is replicated, alpha dropped."""
    arr = buffer.to_array().astype(np.int64)
    if buffer.channels < 3:
        return np.repeat(arr[:, :, :1], 3, axis=2)
    return arr[:, :, :3]
