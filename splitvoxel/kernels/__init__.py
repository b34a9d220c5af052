"""Per-voxel kernels for the split-voxel preprocessing stages.

The voxel bodies are written once (``smoothing``, ``marching_cubes``,
``encoding``) and compiled for two targets: numba CUDA kernels with one thread
per grid cell (``cuda``) and numba parallel CPU loops (``cpu``).
"""

from . import cpu, cuda

__all__ = [
    'cpu',
    'cuda',
]
