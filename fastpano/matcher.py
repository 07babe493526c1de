"""
Feature matching using L2 distance (Euclidean distance).
Pure implementation without OpenCV.
"""

import logging

import numpy as np


logger = logging.getLogger(__name__)


class FeatureMatcher:
    """
    Feature matcher using L2 (Euclidean) distance.
    Implements brute-force matching with Lowe's ratio test, an absolute
    distance cutoff and one-to-one (unique) assignment.
    """

    def __init__(self, ratio_threshold=0.75, max_distance=0.7, unique=True,
                 cross_check=False):
        """
        Initialize feature matcher.

        Args:
            ratio_threshold: Lowe's ratio test threshold (0.75 recommended)
            max_distance: Matches at or above this distance are rejected
            unique: Let each train descriptor be claimed by one query only
            cross_check: Additionally require mutual nearest neighbours
        """
        self.ratio_threshold = ratio_threshold
        self.max_distance = max_distance
        self.unique = unique
        self.cross_check = cross_check

    @classmethod
    def from_config(cls, config):
        return cls(ratio_threshold=config.match_ratio,
                   max_distance=config.match_max_distance)

    def match(self, descriptors1, descriptors2):
        """
        Match features between two sets of descriptors.

        Args:
            descriptors1: Descriptors from first image (N x D)
            descriptors2: Descriptors from second image (M x D)

        Returns:
            matches: List of dicts with queryIdx, trainIdx and distance,
                sorted by ascending distance
        """
        if len(descriptors1) == 0 or len(descriptors2) == 0:
            return []

        desc1 = np.asarray(descriptors1, dtype=np.float64)
        desc2 = np.asarray(descriptors2, dtype=np.float64)

        distances = self._compute_distance_matrix(desc1, desc2)

        matches = self._find_best_matches(distances)

        if self.cross_check:
            reverse_best = np.argmin(distances, axis=0)
            matches = [m for m in matches if reverse_best[m['trainIdx']] == m['queryIdx']]

        # Sort by distance (ascending)
        matches.sort(key=lambda m: m['distance'])

        if self.unique:
            matches = self._enforce_uniqueness(matches)

        logger.debug("Matched %d of %d descriptors", len(matches), len(desc1))
        return matches

    def _compute_distance_matrix(self, desc1, desc2):
        """
        Compute L2 distance matrix between two sets of descriptors.

        ||a - b||^2 = ||a||^2 + ||b||^2 - 2*a.b
        """
        sq_norms1 = np.sum(desc1 ** 2, axis=1, keepdims=True)
        sq_norms2 = np.sum(desc2 ** 2, axis=1, keepdims=True)

        sq_distances = sq_norms1 + sq_norms2.T - 2 * desc1 @ desc2.T

        # Rounding can push exact matches slightly below zero
        sq_distances = np.maximum(sq_distances, 0)

        return np.sqrt(sq_distances)

    def _find_best_matches(self, distances):
        """
        Find nearest neighbours that pass the ratio test and distance cutoff.

        Args:
            distances: N x M distance matrix

        Returns:
            matches: List of match dictionaries
        """
        n_query, n_train = distances.shape
        rows = np.arange(n_query)

        if n_train >= 2:
            two_nearest = np.argpartition(distances, 1, axis=1)[:, :2]
            d0 = distances[rows, two_nearest[:, 0]]
            d1 = distances[rows, two_nearest[:, 1]]
            swap = d1 < d0
            nearest_idx = np.where(swap, two_nearest[:, 1], two_nearest[:, 0])
            nearest_dist = np.minimum(d0, d1)
            second_dist = np.maximum(d0, d1)

            # A zero second distance means an ambiguous duplicate
            with np.errstate(divide='ignore', invalid='ignore'):
                ratio = np.where(second_dist > 0, nearest_dist / second_dist, np.inf)
            accepted = ratio < self.ratio_threshold
        else:
            nearest_idx = np.zeros(n_query, dtype=int)
            nearest_dist = distances[:, 0]
            accepted = np.ones(n_query, dtype=bool)

        accepted &= nearest_dist < self.max_distance

        return [
            {
                'queryIdx': int(i),
                'trainIdx': int(nearest_idx[i]),
                'distance': float(nearest_dist[i]),
            }
            for i in np.nonzero(accepted)[0]
        ]

    def _enforce_uniqueness(self, matches):
        """Keep the closest match per train index (input sorted by distance)."""
        claimed = set()
        unique_matches = []
        for match in matches:
            if match['trainIdx'] in claimed:
                continue
            claimed.add(match['trainIdx'])
            unique_matches.append(match)
        return unique_matches


def matched_points(matches, keypoints1, keypoints2):
    """
    Extract corresponding point coordinates from matches.

    Args:
        matches: Match dictionaries from FeatureMatcher.match
        keypoints1: Query keypoints (N x 2)
        keypoints2: Train keypoints (M x 2)

    Returns:
        points1, points2: Float arrays (K x 2), row i of each corresponds
    """
    if len(matches) == 0:
        return np.empty((0, 2)), np.empty((0, 2))

    query_idx = np.array([m['queryIdx'] for m in matches])
    train_idx = np.array([m['trainIdx'] for m in matches])
    points1 = np.asarray(keypoints1, dtype=np.float64)[query_idx]
    points2 = np.asarray(keypoints2, dtype=np.float64)[train_idx]
    return points1, points2
