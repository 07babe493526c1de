"""Tests for canvas computation, blend strategies and pyramids."""

import numpy as np
import pytest

from fastpano.blending import (
    ImageBlender, MultiImageBlender, blend_linear, build_gaussian_pyramid,
    build_laplacian_pyramid, compute_canvas, crop_to_valid, distance_weight,
    reconstruct_from_pyramid,
)
from fastpano.errors import StitchError


@pytest.mark.parametrize('method', ['none', 'linear', 'multiband'])
def test_identical_full_overlap_returns_input(method):
    image = np.random.default_rng(0).random((30, 40, 3))

    panorama, canvas = ImageBlender(method).blend_pair(image, image, np.eye(3))

    assert (canvas.width, canvas.height) == (40, 30)
    np.testing.assert_allclose(panorama, image, atol=1e-9)


def test_linear_blend_with_full_masks_is_exact():
    image = np.random.default_rng(1).random((16, 16, 3))
    ones = np.ones((16, 16))

    np.testing.assert_allclose(blend_linear(image, image, ones, ones), image)


def test_translated_checkerboard_pair(checkerboard, shift):
    # A periodic board has no FAST-9 corners and no unambiguous matches, so
    # the homography is given here; test_stitch_pair_reconstructs_scene runs
    # the same translation through detection and matching.
    board = checkerboard(100, 120)
    board = np.stack([board] * 3, axis=2)
    img1 = board[:, :100]
    img2 = board[:, 20:]

    panorama, canvas = ImageBlender('linear').blend_pair(img1, img2, shift(20))

    assert panorama.shape == (100, 120, 3)
    assert (canvas.x_min, canvas.y_min) == (0, 0)
    np.testing.assert_allclose(panorama, board, atol=1e-9)


def test_blend_none_overwrites_with_second_image(shift):
    img1 = np.full((20, 20, 3), 0.2)
    img2 = np.full((20, 20, 3), 0.8)

    panorama, _ = ImageBlender('none').blend_pair(img1, img2, shift(5))

    assert panorama.shape == (20, 25, 3)
    np.testing.assert_allclose(panorama[:, :5], 0.2)
    np.testing.assert_allclose(panorama[:, 5:], 0.8)


def test_linear_blend_feathers_the_seam(shift):
    img1 = np.full((20, 40, 3), 0.2)
    img2 = np.full((20, 40, 3), 0.8)

    panorama, _ = ImageBlender('linear').blend_pair(img1, img2, shift(20))
    row = panorama[10, :, 0]

    np.testing.assert_allclose(row[:20], 0.2)
    np.testing.assert_allclose(row[40:], 0.8)
    # Monotone transition inside the overlap
    assert np.all(np.diff(row[20:40]) >= -1e-12)
    assert 0.2 < row[30] < 0.8


def test_multiband_output_is_clamped(shift):
    rng = np.random.default_rng(2)
    img1 = rng.random((32, 32, 3))
    img2 = rng.random((32, 32, 3))

    panorama, _ = ImageBlender('multiband').blend_pair(img1, img2, shift(10, 3))

    assert panorama.shape == (35, 42, 3)
    assert panorama.min() >= 0.0 and panorama.max() <= 1.0


def test_unknown_method_blends_linearly(shift):
    img1 = np.full((10, 20, 3), 0.2)
    img2 = np.full((10, 20, 3), 0.8)

    expected, _ = ImageBlender('linear').blend_pair(img1, img2, shift(10))
    actual, _ = ImageBlender('feather').blend_pair(img1, img2, shift(10))

    np.testing.assert_allclose(actual, expected)


def test_laplacian_pyramid_round_trip():
    image = np.random.default_rng(3).random((37, 53, 3))

    pyramid = build_laplacian_pyramid(image, 4)

    assert len(pyramid) == 4
    assert [level.shape[:2] for level in pyramid] == [(37, 53), (19, 27), (10, 14), (5, 7)]
    np.testing.assert_allclose(reconstruct_from_pyramid(pyramid), image, atol=1e-10)


def test_gaussian_pyramid_halves_each_level():
    mask = np.ones((64, 48))
    pyramid = build_gaussian_pyramid(mask, 4)

    assert [level.shape for level in pyramid] == [(64, 48), (32, 24), (16, 12), (8, 6)]
    for level in pyramid:
        np.testing.assert_allclose(level, 1.0)


def test_distance_weight():
    full = np.ones((10, 10))
    empty = np.zeros((10, 10))
    np.testing.assert_array_equal(distance_weight(full), full)
    np.testing.assert_array_equal(distance_weight(empty), empty)

    mask = np.zeros((21, 21))
    mask[:, :11] = 1.0
    weight = distance_weight(mask)

    assert weight.max() == pytest.approx(1.0)
    assert np.all(weight[:, 11:] == 0)
    assert np.all(weight[:, :11] > 0)
    # Farther from the boundary means more weight
    assert weight[10, 0] > weight[10, 10]


def test_compute_canvas_includes_padding(shift):
    canvas = compute_canvas([(10, 20, 3), (10, 20, 3)], [np.eye(3), shift(15, -4)], padding=10)

    assert canvas.x_min == -10
    assert canvas.y_min == -14
    assert canvas.width == 35 + 20
    assert canvas.height == 14 + 20


def test_blend_multiple_translated_strips(block_texture, rgb, shift):
    scene = rgb(block_texture(100, 160, seed=7))
    images = [scene[:, 0:100], scene[:, 30:130], scene[:, 60:160]]
    transforms = [np.eye(3), shift(30), shift(60)]

    panorama = MultiImageBlender('linear').blend_multiple(images, transforms)

    # 10px padding cropped back to a 5px margin
    assert panorama.shape == (110, 170, 3)
    np.testing.assert_allclose(panorama[5:105, 5:165], scene, atol=1e-9)
    assert np.all(panorama[:5] == 0)


@pytest.mark.parametrize('method', ['none', 'multiband'])
def test_blend_multiple_plain_validity_average(method, shift):
    images = [np.full((20, 20, 3), 0.2), np.full((20, 20, 3), 0.6)]

    panorama = MultiImageBlender(method).blend_multiple(images, [np.eye(3), shift(10)])
    row = panorama[10, :, 0]

    # Overlap is the plain average of both images
    assert row[5 + 15] == pytest.approx(0.4)
    assert row[5 + 2] == pytest.approx(0.2)
    assert row[5 + 27] == pytest.approx(0.6)


def test_crop_to_valid():
    image = np.zeros((50, 60, 3))
    image[20:30, 25:35] = 0.5

    cropped = crop_to_valid(image)
    assert cropped.shape == (20, 20, 3)

    black = np.zeros((10, 10, 3))
    assert crop_to_valid(black).shape == black.shape


def test_huge_canvas_is_refused():
    image = np.ones((10, 10, 3))
    H = np.diag([1e4, 1e4, 1.0])

    with pytest.raises(StitchError):
        ImageBlender('linear').blend_pair(image, image, H)
