import logging

import numpy as np
import pytest

from splitvoxel import (
    MEDIA_2LABEL_SPLIT,
    Config,
    DeviceError,
    decode_volume,
    preprocess_split_voxel,
)
from splitvoxel import preprocess as preprocess_module
from splitvoxel.backends import CPUBackend
from splitvoxel.utils import DeviceManager


def _halves(n=60, split=30):
    vol = np.ones((n, n, n), dtype=np.uint32)
    vol[:, :, split:] = 2
    return vol


def _sphere(n=32, radius=9):
    idx = np.arange(n) - n // 2
    x, y, z = np.meshgrid(idx, idx, idx, indexing="ij")
    return (x * x + y * y + z * z <= radius * radius).astype(np.uint32)


def _run(vol, medianum, labels=None, **kwargs):
    cfg = Config(vol=vol, medianum=medianum, backend="cpu", **kwargs)
    assert preprocess_split_voxel(cfg, labels=labels)
    return cfg


@pytest.fixture(scope="module")
def halves_cfg():
    return _run(_halves(), 3, srcpos=[30, 30, 0], detpos=[[0, 30, 30, 2]])


def test_extended_format_is_left_untouched():
    rng = np.random.default_rng(3)
    vol = rng.integers(0, 2**32, size=(4, 4, 4, 2), dtype=np.uint32)
    cfg = Config(vol=vol, medianum=2, mediabyte=MEDIA_2LABEL_SPLIT, srcpos=[1.0, 2.0, 3.0], backend="cpu")
    before = vol.copy()

    assert preprocess_split_voxel(cfg) is False
    assert cfg.vol is vol
    assert np.array_equal(cfg.vol, before)
    assert cfg.mediabyte == MEDIA_2LABEL_SPLIT
    assert cfg.srcpos.tolist() == [1.0, 2.0, 3.0]
    assert cfg.detmask is None


def test_wide_label_format_is_left_untouched():
    vol = np.arange(27, dtype=np.uint64).reshape(3, 3, 3)
    cfg = Config(vol=vol, medianum=2, mediabyte=8, backend="cpu")
    assert preprocess_split_voxel(cfg) is False
    assert cfg.vol is vol
    assert cfg.mediabyte == 8


def test_config_is_updated_after_conversion(halves_cfg):
    cfg = halves_cfg
    assert cfg.vol.shape == (60, 60, 60, 2)
    assert cfg.vol.dtype == np.uint32
    assert cfg.mediabyte == MEDIA_2LABEL_SPLIT
    assert cfg.srcpos.dtype == np.float32
    assert cfg.srcpos.tolist() == [30.5, 30.5, 0.5]
    assert cfg.detmask.shape == (60, 60, 60)
    assert cfg.detmask.dtype == np.uint8


def test_interface_voxels_carry_both_labels(halves_cfg):
    fields = decode_volume(halves_cfg.vol)
    boundary = fields.upper != 0
    expected = np.zeros(boundary.shape, dtype=bool)
    expected[1:59, 1:59, 30] = True
    assert np.array_equal(boundary, expected)

    assert np.all(fields.lower[1:59, 1:59, 30] == 1)
    assert np.all(fields.upper[1:59, 1:59, 30] == 2)
    # Normal points from label 2 toward label 1, i.e. along -z
    assert np.all(fields.normal[1:59, 1:59, 30] == (128, 128, 0))
    assert np.all(fields.centroid[1:59, 1:59, 30] == (127, 127, 127))


def test_homogeneous_voxels_keep_their_label(halves_cfg):
    fields = decode_volume(halves_cfg.vol)
    plain = fields.upper == 0
    original = _halves()
    assert np.array_equal(fields.lower[plain], original[plain])
    assert not fields.centroid[plain].any()
    assert not fields.normal[plain].any()
    # The outer layer is never classified
    assert fields.lower[0, 30, 30] == 2
    assert halves_cfg.vol[0, 30, 30, 1] == 0


def test_label_order_does_not_change_geometry():
    vol = _halves(20, 10)
    ascending = decode_volume(_run(vol, 3, labels=[0, 1, 2]).vol)
    descending = decode_volume(_run(vol, 3, labels=[0, 2, 1]).vol)

    assert descending.lower[5, 5, 10] == 2
    assert descending.upper[5, 5, 10] == 1
    pairs_a = np.sort(np.stack([ascending.lower, ascending.upper], axis=-1), axis=-1)
    pairs_d = np.sort(np.stack([descending.lower, descending.upper], axis=-1), axis=-1)
    assert np.array_equal(pairs_a, pairs_d)
    assert np.array_equal(ascending.centroid, descending.centroid)
    assert np.array_equal(ascending.normal, descending.normal)


def test_sphere_normals_point_outward():
    cfg = _run(_sphere(), 2)
    fields = decode_volume(cfg.vol)
    boundary = fields.upper != 0
    assert boundary.sum() > 100
    assert np.all(fields.lower[boundary] == 0)
    assert np.all(fields.upper[boundary] == 1)
    assert fields.normal.max() <= 254

    index = np.argwhere(boundary)
    position = index - 1 + fields.centroid[boundary] / 255.0
    normal = fields.normal[boundary] / 255.0 * 2.0 - 1.0
    outward = np.einsum("ij,ij->i", normal, position - 16.0) > 0
    assert outward.mean() > 0.95


def test_later_label_takes_upper_slot():
    vol = np.ones((16, 16, 16), dtype=np.uint32)
    vol[8:, :8, :] = 2
    vol[8:, 8:, :] = 3
    fields = decode_volume(_run(vol, 4).vol)
    assert fields.lower[8, 8, 5] == 1
    assert fields.upper[8, 8, 5] == 3


def test_flat_input_matches_3d_input():
    vol = _sphere(12, 4)
    flat = vol.ravel(order="F")
    from_3d = _run(vol, 2)
    from_flat = _run(flat, 2, dim=vol.shape)
    assert np.array_equal(from_3d.vol, from_flat.vol)

    words = from_flat.flat_volume()
    nx, ny, _ = vol.shape
    x, y, z = 6, 2, 5
    voxel = 2 * (x + nx * (y + ny * z))
    assert words[voxel] == from_flat.vol[x, y, z, 0]
    assert words[voxel + 1] == from_flat.vol[x, y, z, 1]


def test_detector_mask_is_rebuilt(halves_cfg):
    mask = halves_cfg.detmask
    assert mask[0, 30, 30] == 1
    assert mask[30, 30, 30] == 0
    assert mask[0, 0, 0] == 0


@pytest.mark.parametrize(
    "labels, medianum",
    [([0, 256], 2), (None, 300), ([-1], 2), ([1, 0], 2), ([2, 1, 0], 3)],
)
def test_bad_labels_are_rejected(labels, medianum):
    vol = _halves(8, 4)
    cfg = Config(vol=vol, medianum=medianum, backend="cpu")
    with pytest.raises(ValueError):
        preprocess_split_voxel(cfg, labels=labels)
    assert cfg.vol is vol
    assert cfg.mediabyte == 4


def test_order_without_background_label_is_accepted():
    fields = decode_volume(_run(_halves(8, 4), 3, labels=[2, 1]).vol)
    assert fields.lower[4, 4, 4] == 2
    assert fields.upper[4, 4, 4] == 1


def test_wide_cell_labels_are_rejected():
    vol = _halves(8, 4)
    vol[3, 3, 3] = 256
    cfg = Config(vol=vol, medianum=3, srcpos=[1, 1, 1], backend="cpu")
    with pytest.raises(ValueError, match="256"):
        preprocess_split_voxel(cfg)
    assert cfg.vol is vol
    assert cfg.mediabyte == 4
    assert cfg.srcpos.tolist() == [1.0, 1.0, 1.0]


def test_flag_bits_above_label_are_accepted():
    vol = _halves(8, 4) | np.uint32(0x80000000)
    fields = decode_volume(_run(vol, 3).vol)
    assert fields.lower[4, 4, 4] == 1
    assert fields.upper[4, 4, 4] == 2


def test_missing_gpu_is_fatal(monkeypatch):
    monkeypatch.setattr(DeviceManager, "gpu_available", staticmethod(lambda: False))
    cfg = Config(vol=_halves(8, 4), medianum=3, backend="cuda")
    with pytest.raises(DeviceError):
        preprocess_split_voxel(cfg)
    assert cfg.mediabyte == 4


def test_failed_stage_releases_buffers_and_keeps_config(monkeypatch):
    released = []
    release = preprocess_module._WorkBuffers.release

    def tracking_release(self):
        released.append(True)
        release(self)

    def failing_launch(self, stage, shape, *args):
        if stage == "extract":
            raise RuntimeError("launch failed")
        CPUBackend.stages[stage](*args)

    monkeypatch.setattr(preprocess_module._WorkBuffers, "release", tracking_release)
    monkeypatch.setattr(CPUBackend, "launch", failing_launch)

    vol = _halves(8, 4)
    cfg = Config(vol=vol, medianum=3, srcpos=[1, 1, 1], backend="cpu")
    with pytest.raises(DeviceError, match="extract stage"):
        preprocess_split_voxel(cfg)
    assert released == [True]
    assert cfg.vol is vol
    assert cfg.mediabyte == 4
    assert cfg.srcpos.tolist() == [1.0, 1.0, 1.0]
    assert cfg.detmask is None


def test_summary_is_logged(caplog):
    caplog.set_level(logging.INFO, logger="splitvoxel")
    _run(_halves(8, 4), 3)
    messages = [r.getMessage() for r in caplog.records if r.levelno == logging.INFO]
    assert any("split-voxel preprocessing (cpu): 3 labels over 8x8x8 voxels" in m for m in messages)
