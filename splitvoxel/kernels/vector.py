"""Three-component vector helpers for the per-voxel device code.

Vectors are plain tuples so the helpers compile unchanged for the CPU and
CUDA targets.
"""

import math


def _sub(a, b):
    return (a[0] - b[0], a[1] - b[1], a[2] - b[2])


def _cross(a, b):
    return (
        a[1] * b[2] - a[2] * b[1],
        a[2] * b[0] - a[0] * b[2],
        a[0] * b[1] - a[1] * b[0],
    )


def _length(a):
    return math.sqrt(a[0] * a[0] + a[1] * a[1] + a[2] * a[2])


def build(jit):
    """Compile the vector helpers with `jit`; returns ``(sub, cross, length)``."""
    return jit(_sub), jit(_cross), jit(_length)
