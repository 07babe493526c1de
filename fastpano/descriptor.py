"""
Gradient-histogram patch descriptor for detected corners.

This is the default descriptor engine used by the stitcher. Any object
with the same ``describe(image, keypoints)`` method can replace it; the
rest of the pipeline only compares descriptors by Euclidean distance.
"""

import logging

import numpy as np


logger = logging.getLogger(__name__)


class PatchDescriptor:
    """
    Upright SIFT-style descriptor computed on a fixed square window.

    The window around each keypoint is split into a grid x grid layout of
    cells; each cell accumulates a magnitude-weighted histogram of gradient
    orientations. Unlike SIFT there is no scale space and no dominant
    orientation, which suits FAST corners on images related mostly by
    translation.
    """

    def __init__(self, window_radius=8, grid=4, bins=8, clip=0.2):
        """
        Initialize descriptor.

        Args:
            window_radius: Half size of the square window in pixels
            grid: Number of cells per window side
            bins: Orientation bins per cell
            clip: Maximum component value before renormalization
        """
        if (2 * window_radius) % grid != 0:
            raise ValueError("2 * window_radius must be divisible by grid")
        self.window_radius = window_radius
        self.grid = grid
        self.bins = bins
        self.clip = clip

    @property
    def size(self):
        return self.grid * self.grid * self.bins

    def describe(self, image, keypoints):
        """
        Compute descriptors for keypoints.

        Args:
            image: Grayscale image (H x W)
            keypoints: Integer array (K x 2) of (x, y) coordinates

        Returns:
            valid_keypoints: Keypoints whose window fits in the image (M x 2)
            descriptors: Descriptor array (M x grid*grid*bins)
        """
        image = np.asarray(image, dtype=np.float64)
        keypoints = np.asarray(keypoints, dtype=int).reshape(-1, 2)
        h, w = image.shape[:2]
        r = self.window_radius

        xs, ys = keypoints[:, 0], keypoints[:, 1]
        inside = (xs - r >= 0) & (xs + r <= w) & (ys - r >= 0) & (ys + r <= h)
        valid_keypoints = keypoints[inside]

        if len(valid_keypoints) == 0:
            return valid_keypoints, np.empty((0, self.size), dtype=np.float64)

        descriptors = np.array([
            self._compute_descriptor(image[y - r:y + r, x - r:x + r])
            for x, y in valid_keypoints
        ])

        logger.debug("Described %d of %d keypoints", len(valid_keypoints), len(keypoints))
        return valid_keypoints, descriptors

    def _compute_descriptor(self, region):
        """Build the normalized histogram vector for one window."""
        gy = np.zeros_like(region)
        gx = np.zeros_like(region)
        gy[1:-1, :] = region[2:, :] - region[:-2, :]
        gx[:, 1:-1] = region[:, 2:] - region[:, :-2]

        magnitude = np.sqrt(gx ** 2 + gy ** 2)
        angle = np.arctan2(gy, gx) % (2 * np.pi)

        # Linear interpolation between the two nearest orientation bins
        angle_bin = angle / (2 * np.pi) * self.bins
        bin_floor = np.floor(angle_bin).astype(int)
        frac = angle_bin - bin_floor
        bin_lo = bin_floor % self.bins
        bin_hi = (bin_floor + 1) % self.bins

        cell = region.shape[0] // self.grid
        rows, cols = np.indices(region.shape)
        cell_y = rows // cell
        cell_x = cols // cell

        descriptor = np.zeros((self.grid, self.grid, self.bins))
        np.add.at(descriptor, (cell_y, cell_x, bin_lo), magnitude * (1 - frac))
        np.add.at(descriptor, (cell_y, cell_x, bin_hi), magnitude * frac)

        descriptor = descriptor.ravel()

        norm = np.linalg.norm(descriptor)
        if norm > 0:
            descriptor = descriptor / norm

        # Clip large components for illumination robustness
        descriptor = np.clip(descriptor, 0, self.clip)
        norm = np.linalg.norm(descriptor)
        if norm > 0:
            descriptor = descriptor / norm

        return descriptor
