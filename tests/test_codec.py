import numpy as np
import pytest

from splitvoxel import SplitVoxel, decode_volume, quantize_centroid, quantize_normal


def test_split_voxel_accessors_follow_byte_layout():
    voxel = SplitVoxel.from_bytes(3, 7, (10, 20, 30), (40, 50, 60))
    assert voxel.word0 == 3 | (7 << 8) | (10 << 16) | (20 << 24)
    assert voxel.word1 == 30 | (40 << 8) | (50 << 16) | (60 << 24)
    assert (voxel.lower_label, voxel.upper_label) == (3, 7)
    assert (voxel.centroid_x, voxel.centroid_y, voxel.centroid_z) == (10, 20, 30)
    assert (voxel.normal_x, voxel.normal_y, voxel.normal_z) == (40, 50, 60)
    assert voxel.has_boundary


def test_plain_label_voxel_has_no_boundary():
    voxel = SplitVoxel.from_bytes(5)
    assert voxel == SplitVoxel(5, 0)
    assert not voxel.has_boundary


def test_from_bytes_rejects_out_of_range_fields():
    with pytest.raises(ValueError):
        SplitVoxel.from_bytes(256)
    with pytest.raises(ValueError):
        SplitVoxel.from_bytes(1, 2, (0, 0, 0), (0, -1, 0))


def test_quantize_normal_stays_within_254():
    values = np.linspace(-2.0, 2.0, 401)
    quantized = [quantize_normal(v) for v in values]
    assert min(quantized) == 0
    assert max(quantized) == 254
    assert quantize_normal(-1.0) == 0
    assert quantize_normal(0.0) == 128
    assert quantize_normal(1.0) == 254


def test_quantize_centroid_covers_full_byte():
    assert quantize_centroid(0.0) == 0
    assert quantize_centroid(0.5) == 127
    assert quantize_centroid(1.0) == 255
    assert quantize_centroid(-0.1) == 0
    assert quantize_centroid(1.2) == 255


def test_encode_round_trips_within_quantization_step():
    voxel = SplitVoxel.encode(1, 2, (0.25, 0.5, 0.75), (0.6, 0.0, -0.8))
    assert np.allclose(voxel.centroid, (0.25, 0.5, 0.75), atol=1.0 / 255)
    assert np.allclose(voxel.normal, (0.6, 0.0, -0.8), atol=2.0 / 255)


def test_decode_volume_matches_value_type():
    voxels = [
        SplitVoxel.from_bytes(1, 2, (127, 127, 127), (128, 128, 0)),
        SplitVoxel.from_bytes(9),
        SplitVoxel.from_bytes(255, 255, (255, 255, 255), (254, 254, 254)),
    ]
    encoded = np.array([[v.word0, v.word1] for v in voxels], dtype=np.uint32).reshape(3, 1, 1, 2)
    fields = decode_volume(encoded)
    for i, voxel in enumerate(voxels):
        assert fields.lower[i, 0, 0] == voxel.lower_label
        assert fields.upper[i, 0, 0] == voxel.upper_label
        assert tuple(fields.centroid[i, 0, 0]) == (voxel.centroid_x, voxel.centroid_y, voxel.centroid_z)
        assert tuple(fields.normal[i, 0, 0]) == (voxel.normal_x, voxel.normal_y, voxel.normal_z)


def test_decode_volume_requires_two_words():
    with pytest.raises(ValueError):
        decode_volume(np.zeros((2, 2, 2, 3), dtype=np.uint32))
