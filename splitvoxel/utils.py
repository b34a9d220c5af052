"""Utility classes and helper functions for the splitvoxel package.

This module provides device selection, the PyTorch-Numba bridge, stream
caching, CUDA grid computation, label volume validation and the wrapping of
device failures into a single fatal error type.
"""

import contextlib
import math
import traceback

import numpy as np
import torch
from numba import cuda
from numba.cuda.cudadrv.driver import CudaAPIError
from numba.cuda.cudadrv.error import CudaSupportError

from .constants import _TPB_3D


# ============================================================================
# Device Errors
# ============================================================================

class DeviceError(RuntimeError):
    """A device selection, allocation, transfer or launch failure.

    These failures are fatal for a preprocessing run: a partially written
    encoded volume must never reach the transport simulation.
    """


_DEVICE_FAILURES = (RuntimeError, MemoryError, CudaAPIError, CudaSupportError)


@contextlib.contextmanager
def device_call(operation):
    """Re-raise device failures inside the block as :class:`DeviceError`.

    The message names `operation` and the file and line of the call that
    failed.

    Parameters
    ----------
    operation : str
        Short description of the guarded call, e.g. ``"upload padded volume"``.

    Raises
    ------
    DeviceError
        If the block raises a runtime, memory or CUDA driver error.

    Examples
    --------
    >>> with device_call("allocate field"):
    ...     field = torch.zeros(16, 16, 16, device="cuda")
    """
    try:
        yield
    except DeviceError:
        raise
    except _DEVICE_FAILURES as exc:
        frames = traceback.extract_tb(exc.__traceback__)
        where = f"{frames[-1].filename}:{frames[-1].lineno}" if frames else "<unknown>"
        raise DeviceError(f"{operation} failed at {where}: {exc}") from exc


# ============================================================================
# Device Management Utilities
# ============================================================================

class DeviceManager:
    """Utilities for choosing the device that owns the working buffers."""

    BACKENDS = ("auto", "cpu", "cuda")

    @staticmethod
    def gpu_available():
        """Return True when both PyTorch and Numba can reach a CUDA device."""
        return torch.cuda.is_available() and cuda.is_available()

    @staticmethod
    def select_device(backend="auto", deviceid=1):
        """Resolve a backend name and 1-based GPU index to a torch device.

        Parameters
        ----------
        backend : {"auto", "cpu", "cuda"}, optional
            ``"auto"`` uses the GPU when one is reachable and the CPU
            otherwise.
        deviceid : int, optional
            1-based index of the GPU to use (default: 1).

        Returns
        -------
        torch.device
            The selected device. For CUDA, the device is also made current
            for both PyTorch and Numba.

        Raises
        ------
        ValueError
            If `backend` is unknown.
        DeviceError
            If a GPU is required but unavailable, or `deviceid` is out of
            range.

        Examples
        --------
        >>> DeviceManager.select_device("cpu")
        device(type='cpu')
        """
        if backend not in DeviceManager.BACKENDS:
            raise ValueError(f"Unknown backend {backend!r}, expected one of {DeviceManager.BACKENDS}")
        if backend == "cpu":
            return torch.device("cpu")

        if not DeviceManager.gpu_available():
            if backend == "auto":
                return torch.device("cpu")
            raise DeviceError("select device failed: CUDA backend requested but no GPU is available")

        index = int(deviceid) - 1
        count = torch.cuda.device_count()
        if index < 0 or index >= count:
            raise DeviceError(
                f"select device failed: device {deviceid} is out of range, {count} GPU(s) present"
            )
        with device_call(f"select device {deviceid}"):
            torch.cuda.set_device(index)
            cuda.select_device(index)
        return torch.device("cuda", index)

    @staticmethod
    def release(device):
        """Return cached device memory after the working buffers are dropped."""
        if device.type == "cuda":
            torch.cuda.empty_cache()


# ============================================================================
# PyTorch-Numba Bridge
# ============================================================================

class TorchBridge:
    """Bridge between PyTorch tensors and the arrays Numba kernels consume."""

    @staticmethod
    def to_kernel_array(tensor, dtype=None):
        """View a PyTorch tensor as a kernel argument without copying.

        CUDA tensors become Numba ``DeviceNDArray`` views; CPU tensors become
        NumPy views. Both share memory with `tensor`.

        Parameters
        ----------
        tensor : torch.Tensor
            Contiguous tensor on the CPU or a CUDA device.
        dtype : numpy.dtype, optional
            Reinterpret the memory as this dtype (same item size), e.g. to
            read an ``int32`` tensor as ``uint32`` words.

        Returns
        -------
        numpy.ndarray or numba.cuda.cudadrv.devicearray.DeviceNDArray
            Array view sharing memory with `tensor`.

        Raises
        ------
        ValueError
            If `tensor` is not contiguous.
        """
        if not tensor.is_contiguous():
            raise ValueError("Tensor must be contiguous to be shared with a kernel")
        if tensor.is_cuda:
            array = cuda.as_cuda_array(tensor.detach())
        else:
            array = tensor.detach().numpy()
        if dtype is not None:
            array = array.view(dtype)
        return array


# ============================================================================
# Stream Management (cached external Numba stream)
# ============================================================================

_cached_stream_ptr = None
_cached_numba_stream = None


def _get_numba_external_stream_for(pt_stream=None):
    """Stream on which :class:`~splitvoxel.backends.CUDABackend` launches a stage.

    Every stage of a run is queued on PyTorch's current stream, so the
    kernels see the buffer uploads made by ``_WorkBuffers`` and the final
    download waits for the pack stage. A run launches three stages per label
    plus the seed and pack stages on that stream, so the wrapper is built
    once and reused while the stream pointer is unchanged.

    Parameters
    ----------
    pt_stream : torch.cuda.Stream, optional
        Stream owning the working buffers; the current stream if omitted.

    Returns
    -------
    numba.cuda.cudadrv.driver.Stream
        External Numba stream sharing `pt_stream`'s queue.
    """
    global _cached_stream_ptr, _cached_numba_stream
    if pt_stream is None:
        pt_stream = torch.cuda.current_stream()
    ptr = int(pt_stream.cuda_stream)
    if _cached_stream_ptr == ptr and _cached_numba_stream is not None:
        return _cached_numba_stream
    numba_stream = cuda.external_stream(pt_stream.cuda_stream)
    _cached_stream_ptr = ptr
    _cached_numba_stream = numba_stream
    return numba_stream


# ============================================================================
# Label Volume Validation
# ============================================================================

def _validate_label_volume(vol, dim):
    """Return `vol` as a contiguous ``uint32`` array indexed ``[x, y, z]``.

    Parameters
    ----------
    vol : numpy.ndarray
        Flat x-fastest array of ``prod(dim)`` cells, or a 3D array of shape
        `dim`.
    dim : tuple of int
        Volume dimensions ``(dimx, dimy, dimz)``.

    Raises
    ------
    ValueError
        If `vol` does not match `dim` or holds non-integer data.
    """
    vol = np.asarray(vol)
    if not np.issubdtype(vol.dtype, np.integer):
        raise ValueError(f"Label volume must hold integers, got {vol.dtype}")
    dim = tuple(int(n) for n in dim)
    if len(dim) != 3 or min(dim) < 1:
        raise ValueError(f"Volume dimensions must be three positive integers, got {dim}")

    if vol.ndim == 1:
        if vol.size != math.prod(dim):
            raise ValueError(
                f"Flat volume has {vol.size} cells but dimensions {dim} need {math.prod(dim)}"
            )
        vol = vol.reshape(dim, order="F")
    elif vol.shape != dim:
        raise ValueError(
            f"Memory layout mismatch: expected volume of shape {dim} indexed [x, y, z], "
            f"got {vol.shape}"
        )
    return np.ascontiguousarray(vol.astype(np.uint32, copy=False))


# ============================================================================
# CUDA Grid Computation
# ============================================================================

def _grid_3d(n1, n2, n3, tpb=_TPB_3D):
    """Compute 3D CUDA grid and block dimensions.

    Parameters
    ----------
    n1, n2, n3 : int
        Number of cells along x, y and z.
    tpb : tuple of int, optional
        Threads per block (default is `_TPB_3D`).

    Returns
    -------
    grid : tuple of int
        Blocks count per axis.
    tpb : tuple of int
        Threads per block per axis.

    Examples
    --------
    >>> grid, tpb = _grid_3d(60, 60, 60)
    >>> grid
    (8, 8, 8)
    """
    return (
        math.ceil(n1 / tpb[0]),
        math.ceil(n2 / tpb[1]),
        math.ceil(n3 / tpb[2]),
    ), tpb
