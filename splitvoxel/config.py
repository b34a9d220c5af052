"""Simulation configuration consumed and updated by the preprocessing run."""

import math
from dataclasses import dataclass, field
from typing import Optional

import numpy as np

from .constants import KERNEL_SIGMA, KERNEL_SIZE, MAX_SINGLE_LABEL_BYTES, MEDIA_2LABEL_SPLIT
from .utils import _validate_label_volume


@dataclass
class Config:
    """
    Volume and source state shared with the photon transport simulation.

    Preprocessing replaces `vol`, `mediabyte`, `srcpos` and `detmask`; the
    remaining fields are read only.
    """

    vol: np.ndarray
    """Label volume: flat x-fastest cells or a 3D array indexed ``[x, y, z]``.
    After preprocessing, an array of shape ``(dimx, dimy, dimz, 2)`` holding
    the two encoded words of every voxel."""
    dim: Optional[tuple] = None
    """Volume dimensions ``(dimx, dimy, dimz)``; inferred from a 3D `vol`."""
    medianum: int = 1
    """Number of labels to scan, ``0 .. medianum - 1``."""
    deviceid: object = 1
    """1-based GPU index, or a sequence whose first entry is used."""
    srcpos: np.ndarray = field(default_factory=lambda: np.zeros(3, dtype=np.float32))
    """Source position in grid units."""
    mediabyte: int = 4
    """Bytes per label cell; values above 4 mark an already extended format."""
    detpos: np.ndarray = field(default_factory=lambda: np.zeros((0, 4), dtype=np.float32))
    """Detectors as rows of ``x, y, z, radius`` in grid units."""
    detmask: Optional[np.ndarray] = None
    """Per-voxel detector index (0 for none), rebuilt after preprocessing."""
    backend: str = "auto"
    """Execution backend: ``"auto"``, ``"cpu"`` or ``"cuda"``."""
    kernel_size: int = KERNEL_SIZE
    """Per-axis size of the Gaussian smoothing kernel."""
    sigma: float = KERNEL_SIGMA
    """Standard deviation of the Gaussian smoothing kernel, in voxels."""

    def __post_init__(self):
        self.vol = np.asarray(self.vol)
        if self.dim is None:
            if self.vol.ndim < 3:
                raise ValueError("dim is required when vol is not a 3D array")
            self.dim = tuple(int(n) for n in self.vol.shape[:3])
        else:
            self.dim = tuple(int(n) for n in self.dim)
        self.srcpos = np.asarray(self.srcpos, dtype=np.float32)
        if self.srcpos.shape != (3,):
            raise ValueError(f"srcpos must be a 3-vector, got shape {self.srcpos.shape}")
        self.detpos = np.asarray(self.detpos, dtype=np.float32).reshape(-1, 4)

    @property
    def gpu_index(self):
        """The 1-based GPU index from `deviceid`."""
        if np.ndim(self.deviceid) == 0:
            return int(self.deviceid)
        return int(self.deviceid[0])

    @property
    def is_single_label(self):
        return self.mediabyte <= MAX_SINGLE_LABEL_BYTES

    @property
    def is_split(self):
        return self.mediabyte == MEDIA_2LABEL_SPLIT

    def label_volume(self):
        """The label volume as a ``uint32`` array indexed ``[x, y, z]``.

        Raises
        ------
        ValueError
            If `vol` is not a single-label volume matching `dim`.
        """
        if not self.is_single_label:
            raise ValueError(f"Volume format {self.mediabyte} is not a single-label volume")
        return _validate_label_volume(self.vol, self.dim)

    def flat_volume(self):
        """`vol` in the flat x-fastest layout.

        A split volume interleaves its two words per voxel, so word ``w`` of
        voxel ``(x, y, z)`` sits at ``w + 2 * (x + dimx * (y + dimy * z))``.
        """
        if self.is_split:
            return np.asarray(self.vol).transpose(3, 0, 1, 2).ravel(order="F")
        if self.vol.ndim == 1:
            return self.vol
        if self.vol.size != math.prod(self.dim):
            raise ValueError(f"Volume of shape {self.vol.shape} does not match dimensions {self.dim}")
        return self.vol.ravel(order="F")
