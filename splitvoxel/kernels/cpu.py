"""CPU launchers for the split-voxel stages.

Each launcher is a numba parallel loop over the x axis that applies one
voxel body to every cell of its grid. A launcher returns only after all of
its iterations have joined, which is the stage barrier on this target.
"""

import numba
import numpy as np
from numba import prange

from . import encoding, marching_cubes, smoothing

_seed_voxel, _pack_voxel = encoding.build(numba.njit)
_label_mask_voxel, _smooth_voxel = smoothing.build(numba.njit)
_extract_voxel = marching_cubes.build(numba.njit)


@numba.njit(parallel=True)
def seed_labels(d_vol, d_lower, d_upper, d_state):
    nx, ny, nz = d_vol.shape
    for px in prange(nx):
        # prange may type its index as unsigned
        ix = np.int64(px)
        for iy in range(ny):
            for iz in range(nz):
                _seed_voxel(ix, iy, iz, d_vol, d_lower, d_upper, d_state)


@numba.njit(parallel=True)
def label_mask(d_padded, label, d_mask):
    nx, ny, nz = d_padded.shape
    for px in prange(nx):
        ix = np.int64(px)
        for iy in range(ny):
            for iz in range(nz):
                _label_mask_voxel(ix, iy, iz, d_padded, label, d_mask)


@numba.njit(parallel=True)
def smooth_mask(d_mask, d_kernel, d_field):
    nx, ny, nz = d_field.shape
    for px in prange(nx):
        ix = np.int64(px)
        for iy in range(ny):
            for iz in range(nz):
                _smooth_voxel(ix, iy, iz, d_mask, d_kernel, d_field)


@numba.njit(parallel=True)
def extract_surface(d_field, label, iso, d_lower, d_upper, d_state, d_geom):
    nx, ny, nz = d_field.shape
    for px in prange(nx):
        ix = np.int64(px)
        for iy in range(ny):
            for iz in range(nz):
                _extract_voxel(ix, iy, iz, d_field, label, iso, d_lower, d_upper, d_state, d_geom)


@numba.njit(parallel=True)
def pack_voxels(d_lower, d_upper, d_state, d_geom, d_out):
    nx, ny, nz = d_lower.shape
    for px in prange(nx):
        ix = np.int64(px)
        for iy in range(ny):
            for iz in range(nz):
                _pack_voxel(ix, iy, iz, d_lower, d_upper, d_state, d_geom, d_out)
