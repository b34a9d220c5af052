"""Host-side filters that prepare a label volume for smoothing.

This module provides the boundary padder, which extends a label volume by
replicating its outer layer, and the Gaussian kernel builder used by the
smoothing stage.
"""

import numpy as np

from .constants import _DTYPE, KERNEL_SIZE, KERNEL_SIGMA


# ============================================================================
# Boundary Padding
# ============================================================================

def pad_volume(vol, pad):
    """Extend a 3D volume by ``pad`` cells on every face.

    The interior of the result is an exact copy of `vol`. Faces are filled by
    replicating the adjacent real slice outward (zero-order hold), one axis at
    a time in x, y, z order, so edge and corner regions take the values
    propagated by the faces filled in earlier passes.

    Parameters
    ----------
    vol : numpy.ndarray
        3D array indexed ``[x, y, z]``.
    pad : int
        Number of cells added on each side of every axis.

    Returns
    -------
    numpy.ndarray
        Array of shape ``(nx + 2*pad, ny + 2*pad, nz + 2*pad)`` with the dtype
        of `vol`.

    Raises
    ------
    ValueError
        If `vol` is not 3D or `pad` is negative.

    Examples
    --------
    >>> padded = pad_volume(np.arange(8).reshape(2, 2, 2), 1)
    >>> padded.shape
    (4, 4, 4)
    >>> padded[0, 0, 0] == padded[1, 1, 1]
    True
    """
    vol = np.asarray(vol)
    if vol.ndim != 3:
        raise ValueError(f"Expected 3D volume, got {vol.ndim}D")
    if pad < 0:
        raise ValueError(f"Pad width must be non-negative, got {pad}")

    shape = vol.shape
    out = np.empty(tuple(n + 2 * pad for n in shape), dtype=vol.dtype)
    out[pad:pad + shape[0], pad:pad + shape[1], pad:pad + shape[2]] = vol
    if pad == 0:
        return out

    for axis in range(3):
        # Axes padded in earlier passes already span the full extent
        index = [slice(None)] * 3
        for later in range(axis + 1, 3):
            index[later] = slice(pad, pad + shape[later])

        n = shape[axis]
        low, low_src = list(index), list(index)
        low[axis] = slice(0, pad)
        low_src[axis] = slice(pad, pad + 1)
        high, high_src = list(index), list(index)
        high[axis] = slice(pad + n, 2 * pad + n)
        high_src[axis] = slice(pad + n - 1, pad + n)

        out[tuple(low)] = out[tuple(low_src)]
        out[tuple(high)] = out[tuple(high_src)]
    return out


# ============================================================================
# Gaussian Kernel
# ============================================================================

def gaussian_kernel_3d(size=KERNEL_SIZE, sigma=KERNEL_SIGMA, dtype=_DTYPE):
    """Build a normalized 3D Gaussian smoothing kernel.

    Weights are ``exp(-(x^2 + y^2 + z^2) / (2 sigma^2))`` for integer offsets
    from the kernel center, divided by their sum. The normalization keeps a
    smoothed binary mask within [0, 1], which the 0.5 isovalue relies on.

    Parameters
    ----------
    size : int, optional
        Odd number of taps per axis (default: 3).
    sigma : float, optional
        Standard deviation in voxels (default: 1.0).
    dtype : numpy.dtype, optional
        Output data type (default: float32).

    Returns
    -------
    numpy.ndarray
        Kernel of shape ``(size, size, size)`` whose weights sum to 1.

    Raises
    ------
    ValueError
        If `size` is not a positive odd integer or `sigma` is not positive.
    """
    size = int(size)
    if size < 1 or size % 2 == 0:
        raise ValueError(f"Kernel size must be a positive odd integer, got {size}")
    if not sigma > 0:
        raise ValueError(f"Kernel sigma must be positive, got {sigma}")

    half = size // 2
    offsets = np.arange(-half, half + 1, dtype=np.float64)
    x, y, z = np.meshgrid(offsets, offsets, offsets, indexing="ij")
    weights = np.exp(-(x * x + y * y + z * z) / (2.0 * sigma * sigma))
    weights /= weights.sum()
    return weights.astype(dtype)
