"""Seeding and packing of the split-voxel output.

Seeding copies every voxel's original label into the lower-label slot before
any label is scanned. Packing runs once after the last label and quantizes the
float geometry scratch into the two output words.
"""

from .. import codec
from ..codec import BoundaryState
from ..constants import LABEL_BYTE, LABEL_MASK

_STATE_UNSET = int(BoundaryState.UNSET)
_STATE_BOTH = int(BoundaryState.BOTH)


def build(jit):
    """Compile the seed and pack voxel bodies with `jit`.

    Returns
    -------
    seed_voxel, pack_voxel : callable
        Compiled voxel bodies.
    """
    quantize_centroid = jit(codec.quantize_centroid)
    quantize_normal = jit(codec.quantize_normal)

    @jit
    def seed_voxel(ix, iy, iz, d_vol, d_lower, d_upper, d_state):
        d_lower[ix, iy, iz] = (d_vol[ix, iy, iz] & LABEL_MASK) & LABEL_BYTE
        d_upper[ix, iy, iz] = 0
        d_state[ix, iy, iz] = _STATE_UNSET

    @jit
    def pack_voxel(ix, iy, iz, d_lower, d_upper, d_state, d_geom, d_out):
        """Write the two encoded words of one voxel.

        The stored normal points from the numerically higher label toward the
        lower one. With labels scanned in ascending order this is the
        extracted normal itself; a descending pair flips it.
        """
        lower = int(d_lower[ix, iy, iz])
        upper = int(d_upper[ix, iy, iz])
        state = d_state[ix, iy, iz]
        if state == _STATE_UNSET:
            d_out[ix, iy, iz, 0] = lower
            d_out[ix, iy, iz, 1] = 0
            return

        sign = 1.0
        if state == _STATE_BOTH and upper < lower:
            sign = -1.0

        qcx = quantize_centroid(d_geom[ix, iy, iz, 0])
        qcy = quantize_centroid(d_geom[ix, iy, iz, 1])
        qcz = quantize_centroid(d_geom[ix, iy, iz, 2])
        qnx = quantize_normal(sign * d_geom[ix, iy, iz, 3])
        qny = quantize_normal(sign * d_geom[ix, iy, iz, 4])
        qnz = quantize_normal(sign * d_geom[ix, iy, iz, 5])

        d_out[ix, iy, iz, 0] = lower | (upper << 8) | (qcx << 16) | (qcy << 24)
        d_out[ix, iy, iz, 1] = qcz | (qnx << 8) | (qny << 16) | (qnz << 24)

    return seed_voxel, pack_voxel
