"""CUDA kernels for the split-voxel stages.

One thread handles one grid cell; threads never write to another cell, so a
stage needs no intra-kernel synchronization. Ordering between stages is the
host's job (see ``CUDABackend.synchronize``).
"""

from numba import cuda

from ..constants import _DEVICE_DECORATOR, _FASTMATH_DECORATOR
from . import encoding, marching_cubes, smoothing

_seed_voxel, _pack_voxel = encoding.build(_DEVICE_DECORATOR)
_label_mask_voxel, _smooth_voxel = smoothing.build(_DEVICE_DECORATOR)
_extract_voxel = marching_cubes.build(_DEVICE_DECORATOR)


# ============================================================================
# Seeding
# ============================================================================

@_FASTMATH_DECORATOR
def seed_labels(d_vol, d_lower, d_upper, d_state):
    """Copy each voxel's original label into the lower-label slot."""
    ix, iy, iz = cuda.grid(3)
    if ix >= d_vol.shape[0] or iy >= d_vol.shape[1] or iz >= d_vol.shape[2]:
        return
    _seed_voxel(ix, iy, iz, d_vol, d_lower, d_upper, d_state)


# ============================================================================
# Mask Generation and Smoothing
# ============================================================================

@_FASTMATH_DECORATOR
def label_mask(d_padded, label, d_mask):
    """Binary occupancy of `label` over the padded grid."""
    ix, iy, iz = cuda.grid(3)
    if ix >= d_padded.shape[0] or iy >= d_padded.shape[1] or iz >= d_padded.shape[2]:
        return
    _label_mask_voxel(ix, iy, iz, d_padded, label, d_mask)


@_FASTMATH_DECORATOR
def smooth_mask(d_mask, d_kernel, d_field):
    """Gaussian-smoothed label fraction over the real grid."""
    ix, iy, iz = cuda.grid(3)
    if ix >= d_field.shape[0] or iy >= d_field.shape[1] or iz >= d_field.shape[2]:
        return
    _smooth_voxel(ix, iy, iz, d_mask, d_kernel, d_field)


# ============================================================================
# Isosurface Extraction
# ============================================================================

@_FASTMATH_DECORATOR
def extract_surface(d_field, label, iso, d_lower, d_upper, d_state, d_geom):
    """Classify each voxel's cube against `iso` and record its boundary."""
    ix, iy, iz = cuda.grid(3)
    if ix >= d_field.shape[0] or iy >= d_field.shape[1] or iz >= d_field.shape[2]:
        return
    _extract_voxel(ix, iy, iz, d_field, label, iso, d_lower, d_upper, d_state, d_geom)


# ============================================================================
# Packing
# ============================================================================

@_FASTMATH_DECORATOR
def pack_voxels(d_lower, d_upper, d_state, d_geom, d_out):
    """Quantize the boundary scratch into the two output words."""
    ix, iy, iz = cuda.grid(3)
    if ix >= d_lower.shape[0] or iy >= d_lower.shape[1] or iz >= d_lower.shape[2]:
        return
    _pack_voxel(ix, iy, iz, d_lower, d_upper, d_state, d_geom, d_out)
