"""Split-voxel preprocessing of a label volume.

The run pads the label volume, builds the Gaussian kernel, seeds the output
with the original labels and then, label by label, generates a binary mask,
smooths it and extracts the per-voxel boundary plane with marching cubes. The
finished dual-label volume replaces the caller's volume.

Stages run strictly in sequence with a device-wide barrier after each one:
smoothing reads the whole mask neighborhood and extraction reads all eight
cube corners of the smoothed field. Labels share the output buffers and the
per-voxel boundary state, so they are never processed concurrently.
"""

import logging
import time

import numpy as np
import torch

from .backends import KernelBackend
from .constants import _DTYPE, ISOVALUE, LABEL_BYTE, LABEL_MASK, MAX_LABELS, MEDIA_2LABEL_SPLIT
from .detector import rebuild_detector_mask
from .filters import gaussian_kernel_3d, pad_volume
from .utils import DeviceManager, device_call

logger = logging.getLogger(__name__)


class _WorkBuffers:
    """Device buffers owned by one preprocessing run."""

    def __init__(self, device, vol, padded, kernel):
        shape = vol.shape
        self.device = device
        self.vol = torch.from_numpy(vol.view(np.int32)).to(device)
        self.padded = torch.from_numpy(padded.view(np.int32)).to(device)
        self.kernel = torch.from_numpy(kernel).to(device)
        self.mask = torch.zeros(padded.shape, dtype=torch.float32, device=device)
        self.field = torch.zeros(shape, dtype=torch.float32, device=device)
        self.lower = torch.zeros(shape, dtype=torch.uint8, device=device)
        self.upper = torch.zeros(shape, dtype=torch.uint8, device=device)
        self.state = torch.zeros(shape, dtype=torch.uint8, device=device)
        self.geom = torch.zeros(shape + (6,), dtype=torch.float32, device=device)
        self.out = torch.zeros(shape + (2,), dtype=torch.int32, device=device)

    def download(self):
        return self.out.cpu().numpy().view(np.uint32).copy()

    def release(self):
        for name in ("vol", "padded", "kernel", "mask", "field", "lower", "upper", "state", "geom", "out"):
            setattr(self, name, None)
        DeviceManager.release(self.device)


def _check_labels(labels, medianum):
    if labels is None:
        if not 0 <= medianum <= MAX_LABELS:
            raise ValueError(f"medianum must lie in [0, {MAX_LABELS}], got {medianum}")
        return list(range(medianum))
    labels = [int(label) for label in labels]
    for label in labels:
        if not 0 <= label < MAX_LABELS:
            raise ValueError(f"Label {label} does not fit the one-byte label fields")
    # An upper label of 0 would read as "no second label"
    if 0 in labels[1:]:
        raise ValueError(f"Background label 0 must be scanned first, got order {labels}")
    return labels


def _check_volume_labels(vol):
    largest = int((vol & LABEL_MASK).max())
    if largest > LABEL_BYTE:
        raise ValueError(f"Volume holds label {largest}, which does not fit the one-byte label fields")


def _run_stage(backend, stage, shape, *args):
    start = time.perf_counter()
    with device_call(f"{stage} stage"):
        backend.launch(stage, shape, *args)
        backend.synchronize()
    logger.debug("%s stage: %.2f ms", stage, (time.perf_counter() - start) * 1e3)


def preprocess_split_voxel(cfg, labels=None, maskdet=rebuild_detector_mask):
    """Convert a label volume into the dual-label split-voxel format.

    Parameters
    ----------
    cfg : Config
        Simulation configuration. On success `cfg.vol` becomes a ``uint32``
        array of shape ``(dimx, dimy, dimz, 2)``, `cfg.mediabyte` becomes
        ``MEDIA_2LABEL_SPLIT``, `cfg.srcpos` moves by +0.5 per axis and
        `cfg.detmask` is rebuilt.
    labels : iterable of int, optional
        Order in which labels are scanned. Defaults to ``0 .. medianum - 1``.
        Label 0, if present, must come first: an upper label of 0 cannot be
        told apart from a voxel without a second label.
    maskdet : callable, optional
        Detector mask builder called with the updated `cfg`.

    Returns
    -------
    bool
        True if the volume was converted, False if `cfg` already uses an
        extended format and was left untouched.

    Raises
    ------
    ValueError
        If the volume, labels or smoothing parameters are malformed, or a
        cell label (below the flag bits) exceeds 255.
    DeviceError
        If device selection, allocation, transfer or a kernel launch fails.
        No partial result is written to `cfg`.

    Examples
    --------
    >>> cfg = Config(vol=labels_xyz, medianum=3, srcpos=[30, 30, 0], backend="cpu")
    >>> preprocess_split_voxel(cfg)
    True
    >>> cfg.vol.shape
    (60, 60, 60, 2)
    """
    if not cfg.is_single_label:
        logger.debug("volume format %d is already extended, skipping split-voxel preprocessing", cfg.mediabyte)
        return False

    start = time.perf_counter()
    labels = _check_labels(labels, cfg.medianum)
    vol = cfg.label_volume()
    _check_volume_labels(vol)
    kernel = gaussian_kernel_3d(cfg.kernel_size, cfg.sigma, dtype=_DTYPE)
    padded = pad_volume(vol, kernel.shape[0] // 2)

    device = DeviceManager.select_device(cfg.backend, cfg.gpu_index)
    backend = KernelBackend.for_device(device)
    shape = vol.shape

    buffers = None
    try:
        with device_call("allocate and upload working buffers"):
            buffers = _WorkBuffers(device, vol, padded, kernel)

        d_vol = backend.array(buffers.vol, np.uint32)
        d_padded = backend.array(buffers.padded, np.uint32)
        d_kernel = backend.array(buffers.kernel)
        d_mask = backend.array(buffers.mask)
        d_field = backend.array(buffers.field)
        d_lower = backend.array(buffers.lower)
        d_upper = backend.array(buffers.upper)
        d_state = backend.array(buffers.state)
        d_geom = backend.array(buffers.geom)
        d_out = backend.array(buffers.out, np.uint32)

        _run_stage(backend, "seed", shape, d_vol, d_lower, d_upper, d_state)
        for label in labels:
            _run_stage(backend, "mask", padded.shape, d_padded, label, d_mask)
            _run_stage(backend, "smooth", shape, d_mask, d_kernel, d_field)
            _run_stage(backend, "extract", shape, d_field, label, ISOVALUE, d_lower, d_upper, d_state, d_geom)
        _run_stage(backend, "pack", shape, d_lower, d_upper, d_state, d_geom, d_out)

        with device_call("download encoded volume"):
            encoded = buffers.download()
    finally:
        if buffers is not None:
            buffers.release()

    cfg.vol = encoded
    cfg.mediabyte = MEDIA_2LABEL_SPLIT
    cfg.srcpos = cfg.srcpos + np.float32(0.5)
    cfg.detmask = maskdet(cfg)

    logger.info(
        "split-voxel preprocessing (%s): %d labels over %s voxels in %.1f ms",
        backend.name, len(labels), "x".join(str(n) for n in shape), (time.perf_counter() - start) * 1e3,
    )
    return True
