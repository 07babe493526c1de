"""
Pure implementation of Panorama Stitching pipeline
using only NumPy and SciPy - no OpenCV dependencies.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np

from .blending import ImageBlender, MultiImageBlender, to_luma
from .config import StitchConfig
from .descriptor import PatchDescriptor
from .detector import FastDetector
from .errors import InputError, MatchFailure, StitchError
from .homography import HomographyEstimator
from .matcher import FeatureMatcher, matched_points


logger = logging.getLogger(__name__)

MIN_CORRESPONDENCES = 4


@dataclass
class StitchStats:
    """Summary statistics for one stitched image set."""

    image_count: int = 0
    avg_feature_count: float = 0.0
    avg_match_count: float = 0.0
    avg_inlier_ratio: float = 0.0

    def to_dict(self):
        return {
            'imageCount': self.image_count,
            'avgFeatureCount': self.avg_feature_count,
            'avgMatchCount': self.avg_match_count,
            'avgInlierRatio': self.avg_inlier_ratio,
        }


@dataclass
class PairResult:
    """Alignment of image2 onto image1."""

    H: np.ndarray
    inliers: np.ndarray
    matches: list
    feature_counts: tuple

    @property
    def num_matches(self):
        return len(self.matches)

    @property
    def num_inliers(self):
        return int(np.sum(self.inliers))

    @property
    def inlier_ratio(self):
        return self.num_inliers / self.num_matches if self.num_matches else 0.0


@dataclass
class SetResult:
    """Outcome of stitching one image set in a batch."""

    index: int
    image_count: int
    success: bool
    panorama: Optional[np.ndarray] = None
    stats: StitchStats = field(default_factory=StitchStats)
    error: Optional[str] = None
    elapsed: float = 0.0


class PanoramaStitcher:
    """
    Complete panorama stitching pipeline.

    This class coordinates all components:
    1. FAST / FASTR corner detection
    2. Descriptor extraction (pluggable, see PatchDescriptor)
    3. Feature matching
    4. Homography estimation with RANSAC
    5. Image warping and blending

    The stitcher keeps no state between calls; everything tunable comes
    from the immutable StitchConfig.
    """

    def __init__(self, config=None, describer=None):
        """
        Initialize Panorama Stitcher.

        Args:
            config: StitchConfig (defaults are used when None)
            describer: Object with describe(image, keypoints) returning
                (valid_keypoints, descriptors); PatchDescriptor by default
        """
        self.config = config or StitchConfig()
        self.detector = FastDetector(self.config)
        self.describer = describer or PatchDescriptor()
        self.matcher = FeatureMatcher.from_config(self.config)
        self.homography_estimator = HomographyEstimator.from_config(self.config)
        self.blender = ImageBlender(self.config.blend_method)
        self.multi_blender = MultiImageBlender(self.config.blend_method)

    def detect_and_describe(self, gray):
        """
        Detect corners and compute their descriptors.

        Returns:
            points: Keypoints that received a descriptor (N x 2)
            descriptors: Descriptor array (N x D)
        """
        points = self.detector.detect(gray)
        return self.describer.describe(gray, points)

    def match_pair(self, img1, img2):
        """
        Estimate the homography mapping img2 into img1's frame.

        Raises:
            MatchFailure: fewer than 4 matches or RANSAC inliers
        """
        points1, features1 = self.detect_and_describe(to_luma(img1))
        points2, features2 = self.detect_and_describe(to_luma(img2))
        logger.info("  Found %d and %d features respectively", len(points1), len(points2))

        matches = self.matcher.match(features1, features2)
        logger.info("  Matched %d feature pairs", len(matches))

        if len(matches) < MIN_CORRESPONDENCES:
            raise MatchFailure(
                f"Only found {len(matches)} matches, need at least {MIN_CORRESPONDENCES}",
                num_matches=len(matches))

        matched1, matched2 = matched_points(matches, points1, points2)
        H, inliers = self.homography_estimator.find_homography(matched2, matched1)

        result = PairResult(H, inliers, matches, (len(points1), len(points2)))

        if result.num_inliers < MIN_CORRESPONDENCES:
            raise MatchFailure(
                f"Only found {result.num_inliers} inliers, need at least "
                f"{MIN_CORRESPONDENCES} for homography",
                num_matches=result.num_matches, num_inliers=result.num_inliers)

        logger.info("  Computing homography from %d inliers", result.num_inliers)
        return result

    def stitch_pair(self, img1, img2):
        """
        Stitch two images together.

        Args:
            img1: First image (reference frame)
            img2: Second image, warped onto the first

        Returns:
            panorama: Stitched panorama image
            stats: StitchStats for the pair
        """
        img1, img2 = _as_rgb(img1), _as_rgb(img2)

        pair = self.match_pair(img1, img2)

        logger.info("  Warping and blending images")
        panorama, _ = self.blender.blend_pair(img1, img2, pair.H)

        stats = StitchStats(
            image_count=2,
            avg_feature_count=sum(pair.feature_counts) / 2.0,
            avg_match_count=float(pair.num_matches),
            avg_inlier_ratio=pair.inlier_ratio,
        )
        return panorama, stats

    def stitch_multiple(self, images):
        """
        Stitch more than two images by chaining homographies.

        Pairs are aligned sequentially (1-2, 2-3, ...) and each pairwise
        homography is composed onto the previous cumulative transform, so
        every image is expressed in the first image's frame.
        """
        images = [_as_rgb(img) for img in images]
        num_images = len(images)

        transforms = [np.eye(3)]
        total_features = 0
        total_matches = 0
        total_inlier_ratio = 0.0

        for i in range(1, num_images):
            logger.info("  Processing image pair %d-%d", i, i + 1)
            pair = self.match_pair(images[i - 1], images[i])

            total_features += sum(pair.feature_counts)
            total_matches += pair.num_matches
            total_inlier_ratio += pair.inlier_ratio

            transforms.append(transforms[-1] @ pair.H)

        num_pairs = num_images - 1
        stats = StitchStats(
            image_count=num_images,
            avg_feature_count=total_features / (2.0 * num_pairs),
            avg_match_count=total_matches / num_pairs,
            avg_inlier_ratio=total_inlier_ratio / num_pairs,
        )

        logger.info("  Blending all %d images into final panorama", num_images)
        panorama = self.multi_blender.blend_multiple(images, transforms)

        return panorama, stats

    def stitch_images(self, images):
        """
        Stitch an image set, choosing the pair or multi-image path.

        Raises:
            InputError: fewer than 2 images
            MatchFailure: some pair could not be aligned
        """
        if len(images) < 2:
            raise InputError(f"Need at least 2 images to create a panorama, got {len(images)}")

        if len(images) == 2:
            return self.stitch_pair(images[0], images[1])

        return self.stitch_multiple(images)

    def stitch_batch(self, image_sets, loader=None):
        """
        Stitch several independent image sets.

        A failing set is logged and recorded; the remaining sets are still
        processed.

        Args:
            image_sets: Sequence of image sets (lists of images, or of
                paths when a loader is given)
            loader: Optional callable turning one set into a list of images

        Returns:
            List of SetResult, one per set
        """
        results = []

        for index, image_set in enumerate(image_sets, start=1):
            logger.info("Processing Set %d (%d images)...", index, len(image_set))
            start_time = time.perf_counter()

            try:
                images = loader(image_set) if loader is not None else image_set
                panorama, stats = self.stitch_images(images)
            except (StitchError, IOError) as e:
                logger.error("  Error in set %d: %s", index, e)
                results.append(SetResult(index=index, image_count=len(image_set),
                                         success=False, error=str(e),
                                         elapsed=time.perf_counter() - start_time))
                continue

            elapsed = time.perf_counter() - start_time
            logger.info("  Set %d done in %.2f seconds", index, elapsed)
            results.append(SetResult(index=index, image_count=len(image_set),
                                     success=True, panorama=panorama,
                                     stats=stats, elapsed=elapsed))

        return results


def format_summary(results: List[SetResult]) -> str:
    """Human readable report of a batch run."""
    success_count = sum(1 for r in results if r.success)
    lines = [
        'Final Summary',
        '-------------',
        f'Successfully processed: {success_count}/{len(results)} panoramas',
    ]

    for r in results:
        if r.success:
            lines.append(
                f'Set {r.index}: Completed in {r.elapsed:.2f}s ({r.image_count} images, '
                f'{r.stats.avg_feature_count:.0f} features, '
                f'{r.stats.avg_match_count:.0f} matches, '
                f'{r.stats.avg_inlier_ratio * 100:.1f}% inliers)')
        else:
            lines.append(f'Set {r.index}: Failed - {r.error}')

    total_time = sum(r.elapsed for r in results if r.success)
    lines.append(f'Total processing time: {total_time:.2f} seconds')
    if success_count > 0:
        lines.append(f'Average time per panorama: {total_time / success_count:.2f} seconds')

    return '\n'.join(lines)


def _as_rgb(image):
    """Float copy of the image with three channels."""
    image = np.asarray(image, dtype=np.float64)
    if image.ndim == 2:
        image = np.stack([image] * 3, axis=2)
    return image
