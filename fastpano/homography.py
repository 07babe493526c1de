"""
Pure implementation of Homography computation and RANSAC algorithm
using only NumPy - no OpenCV dependencies.
"""

import logging

import numpy as np


logger = logging.getLogger(__name__)

MIN_DET = 0.01
MAX_DET = 100.0
MAX_CONDITION = 1e6


class HomographyEstimator:
    """
    Homography matrix estimation using RANSAC algorithm.

    A homography is a 3x3 matrix that describes the projective transformation
    between two planes (images). Candidate models come from a minimal
    4-point DLT solve; degenerate candidates are skipped but still count
    against the trial budget.
    """

    def __init__(self, reproj_threshold=3.0, max_trials=500,
                 confidence=0.999, adaptive=True, refine=True,
                 random_state=None):
        """
        Initialize Homography Estimator.

        Args:
            reproj_threshold: Maximum reprojection error (pixels) of an inlier
            max_trials: Maximum number of RANSAC iterations
            confidence: Desired probability of drawing one all-inlier sample;
                used to stop early when adaptive is set
            adaptive: Derive the trial count from the observed inlier ratio
            refine: Re-fit the winning model on all of its inliers
            random_state: Seed or numpy Generator for sampling
        """
        self.reproj_threshold = reproj_threshold
        self.max_trials = max_trials
        self.confidence = confidence
        self.adaptive = adaptive
        self.refine = refine
        self.random_state = random_state

    @classmethod
    def from_config(cls, config):
        return cls(reproj_threshold=config.ransac_reproj_threshold,
                   max_trials=config.ransac_max_trials,
                   confidence=config.ransac_confidence,
                   random_state=config.ransac_seed)

    def find_homography(self, src_points, dst_points):
        """
        Find homography matrix using RANSAC.

        Args:
            src_points: Source points (N x 2)
            dst_points: Destination points (N x 2)

        Returns:
            H: Homography matrix (3 x 3) mapping src to dst; identity when
                no valid model exists
            mask: Inlier mask (N,); all False when no valid model exists
        """
        src_points = np.asarray(src_points, dtype=np.float64).reshape(-1, 2)
        dst_points = np.asarray(dst_points, dtype=np.float64).reshape(-1, 2)

        if len(src_points) != len(dst_points):
            raise ValueError("Source and destination points must have same length")

        n_points = len(src_points)

        if n_points < 4:
            return np.eye(3), np.zeros(n_points, dtype=bool)

        rng = np.random.default_rng(self.random_state)

        best_H = None
        best_inliers = np.zeros(n_points, dtype=bool)
        best_num_inliers = 0
        trials_needed = self.max_trials

        trial = 0
        while trial < min(self.max_trials, trials_needed):
            trial += 1

            # Randomly sample 4 distinct correspondences
            indices = rng.choice(n_points, 4, replace=False)
            H = compute_homography_dlt(src_points[indices], dst_points[indices])

            if not is_valid_homography(H):
                continue

            inliers = self._get_inliers(src_points, dst_points, H)
            num_inliers = int(np.sum(inliers))

            if num_inliers > best_num_inliers:
                best_num_inliers = num_inliers
                best_inliers = inliers
                best_H = H

                if self.adaptive:
                    trials_needed = self._trials_needed(num_inliers / n_points)

            if num_inliers > 0.9 * n_points:
                break

        logger.debug("RANSAC ran %d trials, best model has %d/%d inliers",
                     trial, best_num_inliers, n_points)

        if best_H is not None and self.refine and best_num_inliers > 4:
            refined = compute_homography_dlt(src_points[best_inliers], dst_points[best_inliers])
            if is_valid_homography(refined):
                refined_inliers = self._get_inliers(src_points, dst_points, refined)
                if np.sum(refined_inliers) >= best_num_inliers:
                    best_H = refined
                    best_inliers = refined_inliers

        if not is_valid_homography(best_H):
            logger.warning("Degenerate homography detected, using identity")
            return np.eye(3), np.zeros(n_points, dtype=bool)

        return best_H, best_inliers

    def _trials_needed(self, inlier_ratio):
        """Trials for `confidence` of drawing one all-inlier 4-sample."""
        sample_ratio = inlier_ratio ** 4
        if sample_ratio >= 1.0:
            return 1
        if sample_ratio <= 0.0:
            return self.max_trials
        # log1p keeps tiny sample ratios from rounding to log(1) == 0
        with np.errstate(divide='ignore', over='ignore'):
            needed = np.log1p(-self.confidence) / np.log1p(-sample_ratio)
        if not np.isfinite(needed):
            return self.max_trials
        return int(np.ceil(needed))

    def _get_inliers(self, src_pts, dst_pts, H):
        """
        Get inlier mask based on reprojection error.

        Args:
            src_pts: Source points (N x 2)
            dst_pts: Destination points (N x 2)
            H: Homography matrix (3 x 3)

        Returns:
            mask: Boolean mask indicating inliers
        """
        with np.errstate(divide='ignore', invalid='ignore'):
            dst_projected = apply_homography(src_pts, H)
            errors = np.sqrt(np.sum((dst_pts - dst_projected) ** 2, axis=1))

        # NaN errors (points mapped to infinity) compare False
        return errors < self.reproj_threshold


def compute_homography_dlt(src_pts, dst_pts):
    """
    Compute homography using Direct Linear Transform.

    For each point correspondence (x, y) -> (x', y'), the cross product
    [x', y', 1] x H [x, y, 1] = 0 gives two independent equations:
    x' = (h11*x + h12*y + h13) / (h31*x + h32*y + h33)
    y' = (h21*x + h22*y + h23) / (h31*x + h32*y + h33)

    Four points (8 equations) determine the 8 degrees of freedom; more
    points give the least-squares solution.

    Args:
        src_pts: Source points (k x 2), k >= 4
        dst_pts: Destination points (k x 2)

    Returns:
        H: Homography (3 x 3) with H[2, 2] == 1, or None if it cannot be
            solved or H[2, 2] vanishes
    """
    src_pts = np.asarray(src_pts, dtype=np.float64).reshape(-1, 2)
    dst_pts = np.asarray(dst_pts, dtype=np.float64).reshape(-1, 2)
    n = len(src_pts)

    if n < 4 or len(dst_pts) != n:
        return None

    # Normalize points for better numerical stability
    src_norm, T_src = _normalize_points(src_pts)
    dst_norm, T_dst = _normalize_points(dst_pts)

    x, y = src_norm[:, 0], src_norm[:, 1]
    xp, yp = dst_norm[:, 0], dst_norm[:, 1]
    zeros = np.zeros(n)
    ones = np.ones(n)

    # Two rows per correspondence
    A = np.empty((2 * n, 9))
    A[0::2] = np.column_stack([-x, -y, -ones, zeros, zeros, zeros, xp * x, xp * y, xp])
    A[1::2] = np.column_stack([zeros, zeros, zeros, -x, -y, -ones, yp * x, yp * y, yp])

    try:
        _, _, Vt = np.linalg.svd(A)
        H = Vt[-1].reshape(3, 3)

        # Denormalize
        H = np.linalg.inv(T_dst) @ H @ T_src
    except np.linalg.LinAlgError:
        return None

    if not np.all(np.isfinite(H)) or abs(H[2, 2]) < 1e-12:
        return None

    return H / H[2, 2]


def _normalize_points(points):
    """
    Normalize points for better numerical stability.

    Translates points so centroid is at origin and scales so
    average distance from origin is sqrt(2).
    """
    centroid = np.mean(points, axis=0)
    centered = points - centroid

    avg_dist = np.mean(np.sqrt(np.sum(centered ** 2, axis=1)))
    if avg_dist < 1e-10:
        avg_dist = 1.0

    scale = np.sqrt(2) / avg_dist

    T = np.array([
        [scale, 0, -scale * centroid[0]],
        [0, scale, -scale * centroid[1]],
        [0, 0, 1]
    ])

    return centered * scale, T


def is_valid_homography(H):
    """
    Check that H is usable for warping.

    Valid means all entries finite, 0.01 <= |det(H)| <= 100 and
    condition number <= 1e6.
    """
    if H is None:
        return False

    H = np.asarray(H, dtype=np.float64)
    if H.shape != (3, 3) or not np.all(np.isfinite(H)):
        return False

    det_h = abs(np.linalg.det(H))
    if det_h < MIN_DET or det_h > MAX_DET:
        return False

    return np.linalg.cond(H) <= MAX_CONDITION


def apply_homography(points, H):
    """
    Apply homography transformation to points.

    Args:
        points: Points to transform (N x 2)
        H: Homography matrix (3 x 3)

    Returns:
        Transformed points (N x 2)
    """
    points = np.asarray(points, dtype=np.float64).reshape(-1, 2)

    points_homogeneous = np.hstack([points, np.ones((len(points), 1))])
    transformed = points_homogeneous @ np.asarray(H, dtype=np.float64).T

    return transformed[:, :2] / transformed[:, 2:3]


def warp_perspective(image, H, output_shape):
    """
    Warp image using homography matrix.

    Args:
        image: Input image (H x W x C) or (H x W)
        H: Homography matrix (3 x 3) from image to output coordinates
        output_shape: Output image shape (height, width)

    Returns:
        Warped image; output pixels whose source lies outside the image are 0
    """
    h, w = output_shape

    image = np.asarray(image, dtype=np.float64)
    squeeze = image.ndim == 2
    if squeeze:
        image = image[:, :, np.newaxis]

    # Inverse homography for backward warping
    try:
        H_inv = np.linalg.inv(H)
    except np.linalg.LinAlgError:
        output = np.zeros((h, w, image.shape[2]))
        return output[:, :, 0] if squeeze else output

    y_coords, x_coords = np.meshgrid(np.arange(h), np.arange(w), indexing='ij')
    coords = np.stack([x_coords.ravel(), y_coords.ravel(), np.ones(h * w)], axis=1)

    with np.errstate(divide='ignore', invalid='ignore'):
        src_coords = coords @ H_inv.T
        src_x = (src_coords[:, 0] / src_coords[:, 2]).reshape(h, w)
        src_y = (src_coords[:, 1] / src_coords[:, 2]).reshape(h, w)

    output = bilinear_interpolate(image, src_x, src_y)

    return output[:, :, 0] if squeeze else output


def bilinear_interpolate(image, x, y, tolerance=1e-6):
    """
    Bilinear interpolation for image warping.

    Args:
        image: Input image (H x W x C)
        x: X coordinates (H' x W')
        y: Y coordinates (H' x W')
        tolerance: Slack allowed outside the pixel-centre extent

    Returns:
        Interpolated values (H' x W' x C); samples outside the image are 0
    """
    h, w = image.shape[:2]

    # Outside the pixel-centre extent (or non-finite) samples nothing
    valid = ((x >= -tolerance) & (x <= w - 1 + tolerance) &
             (y >= -tolerance) & (y <= h - 1 + tolerance))
    x = np.where(valid, x, 0.0)
    y = np.where(valid, y, 0.0)

    x0 = np.clip(np.floor(x).astype(int), 0, w - 1)
    y0 = np.clip(np.floor(y).astype(int), 0, h - 1)
    x1 = np.clip(x0 + 1, 0, w - 1)
    y1 = np.clip(y0 + 1, 0, h - 1)

    fx = np.clip(x - x0, 0.0, 1.0)[..., np.newaxis]
    fy = np.clip(y - y0, 0.0, 1.0)[..., np.newaxis]

    I00 = image[y0, x0]
    I01 = image[y1, x0]
    I10 = image[y0, x1]
    I11 = image[y1, x1]

    output = ((1 - fx) * (1 - fy) * I00 + (1 - fx) * fy * I01 +
              fx * (1 - fy) * I10 + fx * fy * I11)

    return output * valid[..., np.newaxis]
