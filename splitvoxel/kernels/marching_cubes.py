"""Per-voxel marching-cubes boundary extraction.

For a split voxel ``(ix, iy, iz)`` the cube corners are the smoothed-field
samples ``ix - 1 .. ix`` along each axis, i.e. field index 0 sits at local
position -1 of the voxel grid. The voxel's local frame spans [0, 1] per axis
with corner ``i`` at ``CORNER_OFFSETS[i]``.

Triangles of a classified cube are never stored: each one is folded into an
area-weighted centroid and normal as soon as it is emitted.
"""

from ..codec import BoundaryState
from ..constants import _AREA_EPSILON
from ..tables import CORNER_OFFSETS, EDGE_CORNERS, EDGE_TABLE, TRI_TABLE
from . import vector

_STATE_UNSET = int(BoundaryState.UNSET)
_STATE_LOWER = int(BoundaryState.LOWER)
_STATE_BOTH = int(BoundaryState.BOTH)


def build(jit):
    """Compile the extraction voxel body with `jit`.

    Parameters
    ----------
    jit : callable
        Decorator producing device functions for the target.

    Returns
    -------
    extract_voxel : callable
        Compiled body ``extract_voxel(ix, iy, iz, d_field, label, iso,
        d_lower, d_upper, d_state, d_geom)``.
    """
    sub, cross, length = vector.build(jit)

    @jit
    def corner_value(d_field, ix, iy, iz, corner):
        return d_field[
            ix - 1 + CORNER_OFFSETS[corner, 0],
            iy - 1 + CORNER_OFFSETS[corner, 1],
            iz - 1 + CORNER_OFFSETS[corner, 2],
        ]

    @jit
    def cube_index(d_field, ix, iy, iz, iso):
        index = 0
        for corner in range(8):
            if corner_value(d_field, ix, iy, iz, corner) < iso:
                index |= 1 << corner
        return index

    @jit
    def edge_vertex(d_field, ix, iy, iz, edge, iso):
        """Isovalue crossing on `edge`: ``B + (A - B) * (iso - vB) / (vA - vB)``."""
        a = EDGE_CORNERS[edge, 0]
        b = EDGE_CORNERS[edge, 1]
        va = corner_value(d_field, ix, iy, iz, a)
        vb = corner_value(d_field, ix, iy, iz, b)
        pa = (float(CORNER_OFFSETS[a, 0]), float(CORNER_OFFSETS[a, 1]), float(CORNER_OFFSETS[a, 2]))
        if va == vb:
            return pa
        pb = (float(CORNER_OFFSETS[b, 0]), float(CORNER_OFFSETS[b, 1]), float(CORNER_OFFSETS[b, 2]))
        mu = (iso - vb) / (va - vb)
        return (
            pb[0] + (pa[0] - pb[0]) * mu,
            pb[1] + (pa[1] - pb[1]) * mu,
            pb[2] + (pa[2] - pb[2]) * mu,
        )

    @jit
    def voxel_geometry(d_field, ix, iy, iz, index, iso):
        """Area-weighted centroid and normal of the cube's triangles.

        The triangle table winds every triangle so that its cross product
        faces the below-isovalue corners; the accumulated normal is negated
        so it points into the label whose field was classified.
        """
        total_area = 0.0
        nsx = 0.0
        nsy = 0.0
        nsz = 0.0
        csx = 0.0
        csy = 0.0
        csz = 0.0
        msx = 0.0
        msy = 0.0
        msz = 0.0
        count = 0

        t = 0
        while TRI_TABLE[index, t] != -1:
            p0 = edge_vertex(d_field, ix, iy, iz, TRI_TABLE[index, t], iso)
            p1 = edge_vertex(d_field, ix, iy, iz, TRI_TABLE[index, t + 1], iso)
            p2 = edge_vertex(d_field, ix, iy, iz, TRI_TABLE[index, t + 2], iso)
            t += 3

            cx = (p0[0] + p1[0] + p2[0]) / 3.0
            cy = (p0[1] + p1[1] + p2[1]) / 3.0
            cz = (p0[2] + p1[2] + p2[2]) / 3.0
            msx += cx
            msy += cy
            msz += cz
            count += 1

            n = cross(sub(p1, p0), sub(p2, p0))
            mag = length(n)
            area = 0.5 * mag
            if area <= _AREA_EPSILON:
                continue
            total_area += area
            nsx += area * n[0] / mag
            nsy += area * n[1] / mag
            nsz += area * n[2] / mag
            csx += area * cx
            csy += area * cy
            csz += area * cz

        if total_area > _AREA_EPSILON:
            return (
                csx / total_area, csy / total_area, csz / total_area,
                -nsx / total_area, -nsy / total_area, -nsz / total_area,
            )
        if count > 0:
            # Degenerate surface: keep a position, leave the normal undefined
            return (msx / count, msy / count, msz / count, 0.0, 0.0, 0.0)
        return (0.5, 0.5, 0.5, 0.0, 0.0, 0.0)

    @jit
    def extract_voxel(ix, iy, iz, d_field, label, iso, d_lower, d_upper, d_state, d_geom):
        nx = d_field.shape[0]
        ny = d_field.shape[1]
        nz = d_field.shape[2]
        if ix < 1 or iy < 1 or iz < 1 or ix > nx - 2 or iy > ny - 2 or iz > nz - 2:
            return

        index = cube_index(d_field, ix, iy, iz, iso)
        if EDGE_TABLE[index] == 0:
            return

        state = d_state[ix, iy, iz]
        if state == _STATE_UNSET:
            cx, cy, cz, gx, gy, gz = voxel_geometry(d_field, ix, iy, iz, index, iso)
            d_geom[ix, iy, iz, 0] = cx
            d_geom[ix, iy, iz, 1] = cy
            d_geom[ix, iy, iz, 2] = cz
            d_geom[ix, iy, iz, 3] = gx
            d_geom[ix, iy, iz, 4] = gy
            d_geom[ix, iy, iz, 5] = gz
            d_lower[ix, iy, iz] = label
            d_state[ix, iy, iz] = _STATE_LOWER
        elif label != d_lower[ix, iy, iz]:
            # Later labels take the upper slot; geometry stays with the first
            d_upper[ix, iy, iz] = label
            d_state[ix, iy, iz] = _STATE_BOTH

    return extract_voxel
