import numpy as np
import pytest


def make_block_texture(height, width, cell=10, seed=1, low=0.1, high=1.0):
    """Grayscale mosaic of constant cells with random intensities."""
    rng = np.random.default_rng(seed)
    cells = rng.uniform(low, high, size=(-(-height // cell), -(-width // cell)))
    texture = np.kron(cells, np.ones((cell, cell)))
    return texture[:height, :width]


def make_checkerboard(height, width, cell=10, dark=0.1, bright=0.9):
    ys, xs = np.indices((height, width))
    board = ((ys // cell + xs // cell) % 2).astype(np.float64)
    return dark + (bright - dark) * board


def to_rgb(gray):
    """Slightly tinted RGB version of a grayscale image."""
    return np.stack([gray, 0.9 * gray, 0.8 * gray], axis=2)


def translation(dx, dy=0.0):
    return np.array([[1.0, 0.0, dx], [0.0, 1.0, dy], [0.0, 0.0, 1.0]])


@pytest.fixture
def block_texture():
    return make_block_texture


@pytest.fixture
def checkerboard():
    return make_checkerboard


@pytest.fixture
def rgb():
    return to_rgb


@pytest.fixture
def shift():
    return translation


def make_dot_scene(height, width, spacing=20, sigma=1.2, seed=3):
    """Sparse Gaussian dots on a faint block texture.

    Dot peaks are FAST-12 corners at the default threshold; the background
    stays below it but makes every dot's neighbourhood distinct.
    """
    rng = np.random.default_rng(seed)
    scene = make_block_texture(height, width, cell=5, seed=seed, low=0.05, high=0.15)

    ys, xs = np.indices((height, width))
    for cy in range(spacing // 2, height, spacing):
        for cx in range(spacing // 2, width, spacing):
            jy, jx = rng.integers(-4, 5, size=2)
            amplitude = rng.uniform(0.6, 0.85)
            sq_dist = (xs - cx - jx) ** 2 + (ys - cy - jy) ** 2
            scene += amplitude * np.exp(-sq_dist / (2 * sigma ** 2))

    return np.clip(scene, 0.0, 1.0)


@pytest.fixture
def dot_scene():
    return make_dot_scene
