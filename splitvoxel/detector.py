"""Detector mask construction.

Detectors are spheres given by centre and radius. A voxel belongs to a
detector when it is part of the medium (non-zero label), touches background
or the volume edge through one of its six faces, and its centre lies inside
the detector sphere. Escaping photons can only be captured at such voxels.
"""

import numpy as np

from .constants import LABEL_BYTE, LABEL_MASK


def _voxel_labels(cfg):
    if cfg.is_split:
        encoded = np.asarray(cfg.vol)
        lower = encoded[..., 0] & LABEL_BYTE
        upper = (encoded[..., 0] >> 8) & LABEL_BYTE
        return np.where(lower != 0, lower, upper)
    return cfg.label_volume() & LABEL_MASK


def rebuild_detector_mask(cfg):
    """Mark the boundary voxels covered by each detector.

    Parameters
    ----------
    cfg : Config
        Configuration holding `vol`, `dim`, `mediabyte` and `detpos`. For a
        split volume the voxel label is its lower label, or its upper label
        when the lower one is background, and voxel centres are taken on the
        grid before the half-voxel source shift.

    Returns
    -------
    numpy.ndarray
        ``uint8`` array of shape `cfg.dim` holding the 1-based index of the
        first detector covering each voxel, or 0.

    Raises
    ------
    ValueError
        If more than 255 detectors are given.
    """
    detpos = np.asarray(cfg.detpos, dtype=np.float64).reshape(-1, 4)
    if len(detpos) > LABEL_BYTE:
        raise ValueError(f"At most {LABEL_BYTE} detectors fit the mask, got {len(detpos)}")

    mask = np.zeros(cfg.dim, dtype=np.uint8)
    if len(detpos) == 0:
        return mask

    solid = _voxel_labels(cfg) != 0
    padded = np.pad(solid, 1, mode="constant", constant_values=False)
    exposed = np.zeros_like(solid)
    nx, ny, nz = cfg.dim
    for axis in range(3):
        for step in (-1, 1):
            neighbor = np.roll(padded, step, axis=axis)[1:nx + 1, 1:ny + 1, 1:nz + 1]
            exposed |= ~neighbor
    boundary = solid & exposed

    offset = 0.0 if cfg.is_split else 0.5
    x = np.arange(nx)[:, None, None] + offset
    y = np.arange(ny)[None, :, None] + offset
    z = np.arange(nz)[None, None, :] + offset
    for index, (dx, dy, dz, radius) in enumerate(detpos, start=1):
        inside = (x - dx) ** 2 + (y - dy) ** 2 + (z - dz) ** 2 <= radius * radius
        mask[boundary & inside & (mask == 0)] = index
    return mask
