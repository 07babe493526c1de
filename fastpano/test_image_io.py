"""Tests for Pillow based image loading and saving."""

import numpy as np
import pytest

from fastpano.image_io import prepare_image, read_image, read_images, resize_image, write_image


def test_prepare_uint8_grayscale():
    gray = np.array([[0, 255], [51, 102]], dtype=np.uint8)

    image = prepare_image(gray)

    assert image.shape == (2, 2, 3)
    np.testing.assert_allclose(image[:, :, 1], [[0.0, 1.0], [0.2, 0.4]])


def test_prepare_drops_alpha():
    rgba = np.zeros((4, 5, 4), dtype=np.uint8)
    rgba[..., 3] = 255
    assert prepare_image(rgba).shape == (4, 5, 3)


def test_prepare_rejects_non_finite_values():
    image = np.full((4, 4, 3), 0.5)
    image[1, 1, 0] = np.nan
    with pytest.raises(ValueError):
        prepare_image(image)


def test_large_images_are_downscaled():
    image = np.full((1000, 500, 3), 0.5)

    prepared = prepare_image(image, max_dimension=750)

    assert prepared.shape == (750, 375, 3)
    np.testing.assert_allclose(prepared, 0.5, atol=1e-6)
    assert prepare_image(image, max_dimension=None).shape == (1000, 500, 3)


def test_resize_to_explicit_size():
    image = np.random.default_rng(0).random((20, 30, 3))
    resized = resize_image(image, width=15, height=10)

    assert resized.shape == (10, 15, 3)
    assert resized.min() >= 0.0 and resized.max() <= 1.0


def test_write_then_read(tmp_path):
    image = np.zeros((8, 12, 3))
    image[:, 6:] = 1.0
    path = tmp_path / 'sub' / 'image.png'

    write_image(str(path), image)
    loaded = read_images([str(path)])

    assert len(loaded) == 1
    np.testing.assert_allclose(loaded[0], image)


def test_missing_file_raises_ioerror(tmp_path):
    with pytest.raises(IOError):
        read_image(str(tmp_path / 'missing.png'))
