"""Global constants and configuration for the splitvoxel package.

This module defines core constants used throughout the package, including
data types, CUDA thread block configurations, label/format conventions of the
label volume and the quantization limits of the split-voxel encoding.
"""

import numpy as np
from numba import cuda

# ---------------------------------------------------------------------------
# Data Types and Numerical Constants
# ---------------------------------------------------------------------------

_DTYPE = np.float32
"""Default data type for scalar fields and kernels (numpy.float32)."""

_AREA_EPSILON = 1e-12
"""Smallest triangle area that still contributes to a voxel's boundary plane."""

# ---------------------------------------------------------------------------
# Label Volume Conventions
# ---------------------------------------------------------------------------

LABEL_MASK = 0x00FFFFFF
"""Bits of a single-label cell that hold the material label."""

LABEL_BYTE = 0xFF
"""Mask of one label field in the split-voxel encoding."""

MAX_LABELS = 256
"""Labels must fit the one-byte lower/upper label fields."""

MAX_SINGLE_LABEL_BYTES = 4
"""Largest ``mediabyte`` that still denotes a plain integer label volume."""

MEDIA_2LABEL_SPLIT = 97
"""``mediabyte`` sentinel of the dual-label split-voxel format."""

# ---------------------------------------------------------------------------
# Smoothing and Isosurface Defaults
# ---------------------------------------------------------------------------

ISOVALUE = 0.5
"""Volume fraction at which a label's smoothed field changes side."""

KERNEL_SIZE = 3
"""Default per-axis size of the Gaussian smoothing kernel (odd)."""

KERNEL_SIGMA = 1.0
"""Default standard deviation of the Gaussian smoothing kernel, in voxels."""

# ---------------------------------------------------------------------------
# Quantization Limits
# ---------------------------------------------------------------------------

CENTROID_SCALE = 255.0
NORMAL_CLAMP = 0.996
NORMAL_MAX_BYTE = 254

# ---------------------------------------------------------------------------
# CUDA Thread Block Configurations
# ---------------------------------------------------------------------------

# 3D blocks: 8x8x8 = 512 threads per block, one thread per voxel
_TPB_3D = (8, 8, 8)
"""CUDA threads-per-block for the per-voxel kernels: (8, 8, 8) = 512 threads."""

# ---------------------------------------------------------------------------
# CUDA JIT Decorators
# ---------------------------------------------------------------------------

_FASTMATH_DECORATOR = cuda.jit(fastmath=True)
"""Numba CUDA JIT decorator with fastmath enabled for the stage kernels."""

_DEVICE_DECORATOR = cuda.jit(device=True, fastmath=True)
"""Numba CUDA JIT decorator for the per-voxel device functions."""
