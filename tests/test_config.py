import numpy as np
import pytest

from splitvoxel import MEDIA_2LABEL_SPLIT, Config


def test_dim_is_inferred_from_3d_volume():
    cfg = Config(vol=np.zeros((2, 3, 4), dtype=np.uint8))
    assert cfg.dim == (2, 3, 4)
    assert cfg.srcpos.dtype == np.float32
    assert cfg.detpos.shape == (0, 4)


def test_flat_volume_needs_dim():
    with pytest.raises(ValueError):
        Config(vol=np.zeros(24, dtype=np.uint8))


def test_flat_volume_is_x_fastest():
    cfg = Config(vol=np.arange(24, dtype=np.uint32), dim=(2, 3, 4))
    vol = cfg.label_volume()
    assert vol.shape == (2, 3, 4)
    assert vol[1, 0, 0] == 1
    assert vol[0, 1, 0] == 2
    assert vol[0, 0, 1] == 6
    assert np.array_equal(Config(vol=vol).flat_volume(), np.arange(24))


def test_label_volume_rejects_mismatched_input():
    with pytest.raises(ValueError):
        Config(vol=np.zeros(23, dtype=np.uint32), dim=(2, 3, 4)).label_volume()
    with pytest.raises(ValueError):
        Config(vol=np.zeros((4, 3, 2), dtype=np.uint32), dim=(2, 3, 4)).label_volume()
    with pytest.raises(ValueError):
        Config(vol=np.zeros((2, 3, 4), dtype=np.float32)).label_volume()


def test_label_volume_rejects_split_volume():
    cfg = Config(vol=np.zeros((2, 2, 2, 2), dtype=np.uint32), mediabyte=MEDIA_2LABEL_SPLIT)
    assert cfg.is_split and not cfg.is_single_label
    with pytest.raises(ValueError):
        cfg.label_volume()


def test_srcpos_must_be_a_3_vector():
    with pytest.raises(ValueError):
        Config(vol=np.zeros((2, 2, 2), dtype=np.uint8), srcpos=[1, 2])


def test_gpu_index_accepts_sequence():
    vol = np.zeros((2, 2, 2), dtype=np.uint8)
    assert Config(vol=vol, deviceid=2).gpu_index == 2
    assert Config(vol=vol, deviceid=[3, 1]).gpu_index == 3
