"""Dual-label split-voxel encoding.

Each voxel of a split volume is stored as two 32-bit words::

    word 0: byte0 lower label | byte1 upper label | byte2 centroid x | byte3 centroid y
    word 1: byte0 centroid z  | byte1 normal x    | byte2 normal y   | byte3 normal z

Centroid components are quantized over the voxel's local [0, 1] extent and
normal components are mapped from [-1, 1] to [0, 254], leaving 255 unused.
The quantizers below are plain functions so the device kernels can compile
the very same code.
"""

import enum
import math
from typing import NamedTuple

import numpy as np

from .constants import CENTROID_SCALE, LABEL_BYTE, NORMAL_CLAMP, NORMAL_MAX_BYTE


class BoundaryState(enum.IntEnum):
    """Per-voxel progress of the label scan."""

    UNSET = 0
    LOWER = 1
    BOTH = 2


# ============================================================================
# Quantization (shared by host and device code)
# ============================================================================

def quantize_centroid(value):
    """Map a local centroid coordinate in [0, 1] to a byte."""
    q = int(value * CENTROID_SCALE)
    if q < 0:
        return 0
    if q > 255:
        return 255
    return q


def quantize_normal(value):
    """Map a normal component in [-1, 1] to a byte in [0, 254]."""
    v = (value + 1.0) * 0.5
    v = min(max(v, 0.0), NORMAL_CLAMP)
    q = int(math.floor(v * 255.0 + 0.5))
    return min(q, NORMAL_MAX_BYTE)


def _dequantize_normal(byte):
    return byte / 255.0 * 2.0 - 1.0


# ============================================================================
# Value Type
# ============================================================================

class SplitVoxel(NamedTuple):
    """One encoded voxel, held as its two raw words.

    Examples
    --------
    >>> v = SplitVoxel.encode(1, 2, (0.5, 0.5, 0.5), (0.0, 0.0, -1.0))
    >>> v.lower_label, v.upper_label, v.normal_z
    (1, 2, 0)
    """

    word0: int
    word1: int

    @classmethod
    def from_bytes(cls, lower, upper=0, centroid=(0, 0, 0), normal=(0, 0, 0)):
        """Assemble a voxel from already-quantized byte fields."""
        fields = (lower, upper) + tuple(centroid) + tuple(normal)
        if any(not 0 <= int(f) <= LABEL_BYTE for f in fields):
            raise ValueError(f"Byte fields must lie in [0, 255], got {fields}")
        cx, cy, cz = (int(c) for c in centroid)
        nx, ny, nz = (int(n) for n in normal)
        word0 = int(lower) | (int(upper) << 8) | (cx << 16) | (cy << 24)
        word1 = cz | (nx << 8) | (ny << 16) | (nz << 24)
        return cls(word0, word1)

    @classmethod
    def encode(cls, lower, upper, centroid, normal):
        """Quantize a float boundary plane and pack it with its two labels."""
        return cls.from_bytes(
            lower,
            upper,
            tuple(quantize_centroid(c) for c in centroid),
            tuple(quantize_normal(n) for n in normal),
        )

    @property
    def lower_label(self):
        return self.word0 & LABEL_BYTE

    @property
    def upper_label(self):
        return (self.word0 >> 8) & LABEL_BYTE

    @property
    def centroid_x(self):
        return (self.word0 >> 16) & LABEL_BYTE

    @property
    def centroid_y(self):
        return (self.word0 >> 24) & LABEL_BYTE

    @property
    def centroid_z(self):
        return self.word1 & LABEL_BYTE

    @property
    def normal_x(self):
        return (self.word1 >> 8) & LABEL_BYTE

    @property
    def normal_y(self):
        return (self.word1 >> 16) & LABEL_BYTE

    @property
    def normal_z(self):
        return (self.word1 >> 24) & LABEL_BYTE

    @property
    def has_boundary(self):
        """True when any geometry field is set."""
        return (self.word0 >> 16) != 0 or self.word1 != 0

    @property
    def centroid(self):
        """Decoded centroid in local voxel coordinates."""
        return tuple(b / CENTROID_SCALE for b in (self.centroid_x, self.centroid_y, self.centroid_z))

    @property
    def normal(self):
        """Decoded (unnormalized) boundary normal."""
        return tuple(_dequantize_normal(b) for b in (self.normal_x, self.normal_y, self.normal_z))


# ============================================================================
# Whole-Volume Decoding
# ============================================================================

class SplitVolumeFields(NamedTuple):
    lower: np.ndarray
    upper: np.ndarray
    centroid: np.ndarray
    normal: np.ndarray


def decode_volume(encoded):
    """Split an encoded volume into its byte fields.

    Parameters
    ----------
    encoded : numpy.ndarray
        Array of shape ``(..., 2)`` holding the two words of every voxel.

    Returns
    -------
    SplitVolumeFields
        ``lower`` and ``upper`` label arrays of shape ``(...)`` and
        ``centroid`` and ``normal`` byte arrays of shape ``(..., 3)``, all
        uint8.

    Raises
    ------
    ValueError
        If the last axis of `encoded` does not have length 2.
    """
    encoded = np.asarray(encoded)
    if encoded.shape[-1] != 2:
        raise ValueError(f"Expected two words per voxel, got trailing axis {encoded.shape[-1]}")
    word0 = encoded[..., 0].astype(np.uint32)
    word1 = encoded[..., 1].astype(np.uint32)

    def byte(word, shift):
        return ((word >> np.uint32(shift)) & np.uint32(LABEL_BYTE)).astype(np.uint8)

    return SplitVolumeFields(
        lower=byte(word0, 0),
        upper=byte(word0, 8),
        centroid=np.stack([byte(word0, 16), byte(word0, 24), byte(word1, 0)], axis=-1),
        normal=np.stack([byte(word1, 8), byte(word1, 16), byte(word1, 24)], axis=-1),
    )
