"""splitvoxel - sub-voxel boundary preprocessing for label volumes.

Converts an integer label volume into the dual-label split-voxel format: each
voxel keeps up to two labels plus the quantized centroid and normal of the
material boundary crossing it. The per-voxel stages run as Numba CUDA kernels
on PyTorch-owned GPU buffers, or as Numba parallel loops on the CPU.
"""

from .codec import (
    BoundaryState,
    SplitVoxel,
    decode_volume,
    quantize_centroid,
    quantize_normal,
)

from .config import Config

from .constants import (
    ISOVALUE,
    LABEL_MASK,
    MEDIA_2LABEL_SPLIT,
)

from .detector import rebuild_detector_mask

from .filters import (
    gaussian_kernel_3d,
    pad_volume,
)

from .preprocess import preprocess_split_voxel

from .utils import DeviceError

__version__ = '0.1.0'

__all__ = [
    'BoundaryState',
    'SplitVoxel',
    'decode_volume',
    'quantize_centroid',
    'quantize_normal',
    'Config',
    'ISOVALUE',
    'LABEL_MASK',
    'MEDIA_2LABEL_SPLIT',
    'rebuild_detector_mask',
    'gaussian_kernel_3d',
    'pad_volume',
    'preprocess_split_voxel',
    'DeviceError',
]
