"""Tests for the Gaussian pyramid helper."""
import numpy as np
import pytest

from texsyn.errors import InvalidArguments
from texsyn.pyramid import GaussianPyramid, is_power_of_2
from texsyn.utils import load_texture


def test_is_power_of_2():
    assert [n for n in range(20) if is_power_of_2(n)] == [1, 2, 4, 8, 16]


def test_pyramid_halves_every_level(noise_texture):
    base = np.resize(noise_texture, (16, 32, 3))
    pyramid = GaussianPyramid(base, 3)
    assert pyramid.levels == 3
    assert len(pyramid) == 4
    assert [level.shape for level in pyramid] == [(16, 32, 3), (8, 16, 3), (4, 8, 3), (2, 4, 3)]
    assert pyramid.level(0) is base


def test_pyramid_blurs_before_decimating():
    base = np.zeros((16, 16, 3), dtype=np.uint8)
    base[::2, ::2] = 255
    level = GaussianPyramid(base, 1).level(1)
    # plain decimation would keep only white pixels
    assert level.max() < 255


def test_pyramid_of_flat_image_stays_flat():
    base = np.full((8, 8, 3), 77, dtype=np.uint8)
    for level in GaussianPyramid(base, 2):
        assert np.abs(level.astype(int) - 77).max() <= 1


@pytest.mark.parametrize("shape, levels", [((12, 16, 3), 1), ((16, 16, 3), 4), ((16, 16, 3), 9)])
def test_pyramid_rejects_bad_dimensions(shape, levels):
    with pytest.raises(InvalidArguments):
        GaussianPyramid(np.zeros(shape, dtype=np.uint8), levels)


def test_pyramid_save(tmp_path):
    pyramid = GaussianPyramid(np.full((8, 8, 3), 5, dtype=np.uint8), 2)
    pyramid.save(str(tmp_path / "pyr"))
    assert load_texture(str(tmp_path / "pyr_base.png")).shape == (8, 8, 3)
    assert load_texture(str(tmp_path / "pyr_1.png")).shape == (2, 2, 3)


def test_pyramid_is_exported_from_package():
    import texsyn

    assert texsyn.GaussianPyramid is GaussianPyramid
    assert 'GaussianPyramid' in texsyn.__all__
