"""
FAST corner detection with optional Harris filtering (FASTR),
implemented with NumPy and SciPy - no OpenCV dependencies.

A pixel is a FAST corner when a contiguous arc of the 16 pixels on a
radius-3 Bresenham circle is uniformly brighter or darker than the
centre by more than a threshold. FASTR additionally keeps only corners
with a strong Harris response, which removes most edge responses.
"""

import logging

import numpy as np
from scipy.ndimage import gaussian_filter, sobel, uniform_filter


logger = logging.getLogger(__name__)

# Bresenham circle of radius 3, clockwise from 12 o'clock, as (dx, dy)
CIRCLE_OFFSETS = np.array([
    [0, -3], [1, -3], [2, -2], [3, -1],
    [3, 0], [3, 1], [2, 2], [1, 3],
    [0, 3], [-1, 3], [-2, 2], [-3, 1],
    [-3, 0], [-3, -1], [-2, -2], [-1, -3],
])

BORDER = 3
MAX_CORNERS = 500
HARRIS_K = 0.04


def detect_fast(image, threshold, arc_length, max_corners=MAX_CORNERS):
    """
    Detect FAST corners.

    Args:
        image: Grayscale image (H x W) with values in [0, 1]
        threshold: Intensity difference a circle pixel must exceed
        arc_length: Number of contiguous circle pixels required (N of 16)
        max_corners: Corners kept after variance ranking when over-dense

    Returns:
        points: Integer array (K x 2) of (x, y) corner coordinates
    """
    image = np.asarray(image, dtype=np.float64)
    height, width = image.shape[:2]

    # Need the circle plus a centre pixel
    if height < 2 * BORDER + 1 or width < 2 * BORDER + 1:
        return np.empty((0, 2), dtype=int)

    inner_h = height - 2 * BORDER
    inner_w = width - 2 * BORDER
    center = image[BORDER:BORDER + inner_h, BORDER:BORDER + inner_w].ravel()

    # Sample all 16 circle pixels for every candidate at once (16 x K)
    samples = np.empty((16, center.size), dtype=np.float64)
    for i, (dx, dy) in enumerate(CIRCLE_OFFSETS):
        samples[i] = image[BORDER + dy:BORDER + dy + inner_h,
                           BORDER + dx:BORDER + dx + inner_w].ravel()

    brighter = samples > center + threshold
    darker = samples < center - threshold

    is_corner = _check_contiguous(brighter, darker, arc_length)

    ys, xs = np.nonzero(is_corner.reshape(inner_h, inner_w))
    points = np.column_stack([xs + BORDER, ys + BORDER]).astype(int)

    if len(points) > max_corners:
        logger.debug("FAST found %d corners, keeping the %d strongest",
                     len(points), max_corners)
        points = _non_max_suppression(points, image, max_corners)

    return points


def detect_fastr(image, threshold, arc_length, harris_threshold,
                 window=None, max_corners=MAX_CORNERS):
    """
    Detect FAST corners and keep those with Harris response above threshold.

    The result is always a subset of detect_fast() for the same
    threshold and arc length.
    """
    points = detect_fast(image, threshold, arc_length, max_corners)

    if len(points) == 0:
        return points

    R = harris_response(image, harris_threshold, window)
    harris_values = R[points[:, 1], points[:, 0]]
    strong = harris_values > harris_threshold

    logger.debug("FAST detected %d corners, kept %d after Harris filtering",
                 len(points), int(np.sum(strong)))

    return points[strong]


def harris_response(image, harris_threshold, window=None):
    """
    Dense Harris corner response normalized to [0, 1].

    Args:
        image: Grayscale image (H x W)
        harris_threshold: Threshold used by FASTR; unless window is given
            the smoothing window is derived from it as
            clamp(round(threshold * 1000), 3, 7)
        window: Explicit smoothing window size (overrides the derivation)

    Returns:
        R: Response map (H x W)
    """
    image = np.asarray(image, dtype=np.float64)

    Ix = sobel(image, axis=1, mode='nearest')
    Iy = sobel(image, axis=0, mode='nearest')

    if window is None:
        window = int(np.floor(harris_threshold * 1000 + 0.5))
        window = max(3, min(7, window))
    sigma = window / 3.0
    radius = max(1, window // 2)
    truncate = radius / sigma

    # Structure tensor components, Gaussian weighted
    Sx2 = gaussian_filter(Ix * Ix, sigma, mode='nearest', truncate=truncate)
    Sy2 = gaussian_filter(Iy * Iy, sigma, mode='nearest', truncate=truncate)
    Sxy = gaussian_filter(Ix * Iy, sigma, mode='nearest', truncate=truncate)

    det_m = Sx2 * Sy2 - Sxy ** 2
    trace_m = Sx2 + Sy2
    R = det_m - HARRIS_K * trace_m ** 2

    r_min = R.min()
    r_max = R.max()
    return (R - r_min) / (r_max - r_min + np.finfo(np.float64).eps)


def _check_contiguous(brighter, darker, arc_length):
    """
    True for every column holding arc_length contiguous brighter or
    darker entries, wrapping around the circle.
    """
    n = arc_length
    brighter_wrap = np.concatenate([brighter, brighter[:n - 1]], axis=0)
    darker_wrap = np.concatenate([darker, darker[:n - 1]], axis=0)

    is_corner = np.zeros(brighter.shape[1], dtype=bool)
    for start in range(len(CIRCLE_OFFSETS)):
        is_corner |= np.all(brighter_wrap[start:start + n], axis=0)
        is_corner |= np.all(darker_wrap[start:start + n], axis=0)

    return is_corner


def _non_max_suppression(points, image, max_corners):
    """Keep the corners with the highest 3x3 neighbourhood variance."""
    mean = uniform_filter(image, size=3, mode='nearest')
    mean_sq = uniform_filter(image * image, size=3, mode='nearest')
    variance = mean_sq - mean * mean

    strengths = variance[points[:, 1], points[:, 0]]
    order = np.argsort(-strengths, kind='stable')
    return points[order[:max_corners]]


class FastDetector:
    """
    Corner detector configured by a StitchConfig.

    Holds no state besides the (immutable) config, so one instance can
    be shared between images.
    """

    def __init__(self, config):
        self.config = config

    def detect(self, image):
        """Run FAST or FASTR depending on config.detector_kind."""
        if self.config.detector_kind == 'FASTR':
            return self.detect_fastr(image)
        return self.detect_fast(image)

    def detect_fast(self, image):
        return detect_fast(image, self.config.fast_threshold,
                           self.config.fast_arc_length,
                           self.config.max_corners)

    def detect_fastr(self, image):
        return detect_fastr(image, self.config.fast_threshold,
                            self.config.fast_arc_length,
                            self.config.harris_threshold,
                            window=self.config.harris_window,
                            max_corners=self.config.max_corners)
