import numpy as np
import pytest

from splitvoxel import gaussian_kernel_3d, pad_volume


@pytest.mark.parametrize("size, sigma", [(1, 1.0), (3, 0.5), (3, 1.0), (5, 2.0), (7, 0.8)])
def test_gaussian_kernel_is_normalized(size, sigma):
    kernel = gaussian_kernel_3d(size, sigma)
    assert kernel.shape == (size, size, size)
    assert kernel.dtype == np.float32
    assert abs(float(kernel.sum(dtype=np.float64)) - 1.0) < 1e-5


def test_gaussian_kernel_is_symmetric_with_central_peak():
    kernel = gaussian_kernel_3d(3, 1.0)
    assert np.argmax(kernel) == 13
    assert np.allclose(kernel, kernel[::-1, ::-1, ::-1])
    assert np.allclose(kernel, kernel.transpose(2, 0, 1))


@pytest.mark.parametrize("size, sigma", [(2, 1.0), (0, 1.0), (3, 0.0), (3, -1.0)])
def test_gaussian_kernel_rejects_bad_parameters(size, sigma):
    with pytest.raises(ValueError):
        gaussian_kernel_3d(size, sigma)


@pytest.mark.parametrize("pad", [0, 1, 2, 3])
def test_padding_crops_back_to_original(pad):
    rng = np.random.default_rng(pad)
    vol = rng.integers(0, 7, size=(4, 5, 6), dtype=np.uint32)
    padded = pad_volume(vol, pad)
    assert padded.shape == (4 + 2 * pad, 5 + 2 * pad, 6 + 2 * pad)
    assert padded.dtype == vol.dtype
    assert np.array_equal(padded[pad:pad + 4, pad:pad + 5, pad:pad + 6], vol)


def test_padding_replicates_the_nearest_real_voxel():
    rng = np.random.default_rng(7)
    vol = rng.integers(0, 100, size=(3, 4, 5), dtype=np.uint32)
    assert np.array_equal(pad_volume(vol, 2), np.pad(vol, 2, mode="edge"))


def test_padding_fills_corners_from_corner_voxels():
    vol = np.arange(8, dtype=np.uint32).reshape(2, 2, 2)
    padded = pad_volume(vol, 1)
    assert padded[0, 0, 0] == vol[0, 0, 0]
    assert padded[-1, -1, -1] == vol[-1, -1, -1]
    assert padded[0, -1, 0] == vol[0, -1, 0]
    assert padded[-1, 0, -1] == vol[-1, 0, -1]


def test_padding_rejects_bad_input():
    with pytest.raises(ValueError):
        pad_volume(np.zeros((2, 2, 2)), -1)
    with pytest.raises(ValueError):
        pad_volume(np.zeros((2, 2)), 1)
