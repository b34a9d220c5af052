import logging

import numpy as np
import torch
import matplotlib.pyplot as plt
from splitvoxel import Config, decode_volume, preprocess_split_voxel


def two_spheres(n):
    idx = np.arange(n) - (n - 1) / 2
    x, y, z = np.meshgrid(idx, idx, idx, indexing="ij")
    vol = np.zeros((n, n, n), dtype=np.uint32)
    vol[x * x + y * y + z * z <= (0.4 * n) ** 2] = 1
    vol[(x - 0.1 * n) ** 2 + y * y + z * z <= (0.2 * n) ** 2] = 2
    return vol


def main():
    logging.basicConfig(level=logging.INFO)

    n = 64
    vol = two_spheres(n)
    backend = "cuda" if torch.cuda.is_available() else "cpu"
    cfg = Config(
        vol=vol,
        medianum=3,
        srcpos=[n / 2, n / 2, 0],
        detpos=[[n / 2, n / 2, n - 1, 4]],
        backend=backend,
    )
    preprocess_split_voxel(cfg)

    fields = decode_volume(cfg.vol)
    boundary = fields.upper != 0
    print("Boundary voxels:", int(boundary.sum()))
    print("Detector voxels:", int((cfg.detmask > 0).sum()))
    print("Source position:", cfg.srcpos)

    mid = n // 2
    # Decoded normal z component of the mid slice, zero away from boundaries
    normal_z = np.where(boundary, fields.normal[..., 2] / 255.0 * 2.0 - 1.0, 0.0)

    plt.figure(figsize=(15, 5))
    plt.subplot(1, 3, 1)
    plt.imshow(vol[:, :, mid].T, cmap="viridis", origin="lower")
    plt.title("Labels")
    plt.axis("off")
    plt.subplot(1, 3, 2)
    plt.imshow(fields.upper[:, :, mid].T, cmap="gray", origin="lower")
    plt.title("Upper label")
    plt.axis("off")
    plt.subplot(1, 3, 3)
    plt.imshow(normal_z[:, :, mid].T, cmap="coolwarm", vmin=-1, vmax=1, origin="lower")
    plt.title("Boundary normal z")
    plt.axis("off")
    plt.tight_layout()
    plt.show()


if __name__ == "__main__":
    main()
