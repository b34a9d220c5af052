"""Per-label mask generation and Gaussian smoothing.

The mask body runs over the padded grid; the smoothing body runs over the
real grid and reads a full kernel-sized neighborhood of the padded mask, so
the mask stage must be complete before smoothing starts.
"""

from ..constants import LABEL_MASK


def build(jit):
    """Compile the mask and smoothing voxel bodies with `jit`.

    Parameters
    ----------
    jit : callable
        Decorator producing device functions for the target
        (``numba.njit`` or ``numba.cuda.jit(device=True)``).

    Returns
    -------
    label_mask_voxel, smooth_voxel : callable
        Compiled voxel bodies.
    """

    @jit
    def label_mask_voxel(ix, iy, iz, d_padded, label, d_mask):
        # Binary occupancy of `label` at one padded cell
        if (d_padded[ix, iy, iz] & LABEL_MASK) == label:
            d_mask[ix, iy, iz] = 1.0
        else:
            d_mask[ix, iy, iz] = 0.0

    @jit
    def smooth_voxel(ix, iy, iz, d_mask, d_kernel, d_field):
        """Convolve the padded mask with the kernel at real voxel (ix, iy, iz).

        Voxel ``ix`` sits at padded index ``ix + pad``; reversing the kernel
        coordinates makes this a true convolution rather than a correlation.
        """
        kx = d_kernel.shape[0]
        ky = d_kernel.shape[1]
        kz = d_kernel.shape[2]
        acc = 0.0
        for i in range(kx):
            for j in range(ky):
                for k in range(kz):
                    acc += d_kernel[i, j, k] * d_mask[ix + kx - 1 - i, iy + ky - 1 - j, iz + kz - 1 - k]
        d_field[ix, iy, iz] = acc

    return label_mask_voxel, smooth_voxel
