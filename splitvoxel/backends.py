"""Execution backends for the split-voxel stages.

A backend launches one stage over a 3D grid and provides the barrier that
separates stages. Both backends run the same voxel bodies on torch-owned
buffers; they differ only in how a stage is scheduled.
"""

import torch

from .kernels import cpu as cpu_kernels
from .kernels import cuda as cuda_kernels
from .utils import TorchBridge, _get_numba_external_stream_for, _grid_3d


class KernelBackend:
    """Base class; see :meth:`for_device`."""

    name = None
    stages = {}

    def __init__(self, device):
        self.device = device

    @staticmethod
    def for_device(device):
        """Pick the backend matching a torch device."""
        if device.type == "cuda":
            return CUDABackend(device)
        return CPUBackend(device)

    def array(self, tensor, dtype=None):
        """Kernel view of a working buffer."""
        return TorchBridge.to_kernel_array(tensor, dtype)

    def launch(self, stage, shape, *args):
        raise NotImplementedError

    def synchronize(self):
        raise NotImplementedError


class CPUBackend(KernelBackend):
    """Numba parallel loops; a launch returns once every iteration has joined."""

    name = "cpu"
    stages = {
        "seed": cpu_kernels.seed_labels,
        "mask": cpu_kernels.label_mask,
        "smooth": cpu_kernels.smooth_mask,
        "extract": cpu_kernels.extract_surface,
        "pack": cpu_kernels.pack_voxels,
    }

    def launch(self, stage, shape, *args):
        self.stages[stage](*args)

    def synchronize(self):
        pass


class CUDABackend(KernelBackend):
    """Numba CUDA kernels on PyTorch's current stream, one thread per cell."""

    name = "cuda"
    stages = {
        "seed": cuda_kernels.seed_labels,
        "mask": cuda_kernels.label_mask,
        "smooth": cuda_kernels.smooth_mask,
        "extract": cuda_kernels.extract_surface,
        "pack": cuda_kernels.pack_voxels,
    }

    def launch(self, stage, shape, *args):
        grid, tpb = _grid_3d(*shape)
        numba_stream = _get_numba_external_stream_for(torch.cuda.current_stream(self.device))
        self.stages[stage][grid, tpb, numba_stream](*args)

    def synchronize(self):
        torch.cuda.synchronize(self.device)
