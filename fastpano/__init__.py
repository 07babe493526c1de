"""
Panorama image stitching built on FAST corners, written with NumPy,
SciPy and Pillow (no OpenCV).

Main components:
- FAST / FASTR: corner detection with optional Harris filtering
- PatchDescriptor: gradient-histogram descriptors for the corners
- Feature Matching: ratio test with one-to-one assignment
- Homography: RANSAC over a minimal 4-point DLT solver
- Blending: none / linear feathering / multiband pyramid blending

Example usage:
    from fastpano.image_io import read_images, write_image
    from fastpano.panorama_stitcher import PanoramaStitcher

    images = read_images(['img1.jpg', 'img2.jpg'])
    stitcher = PanoramaStitcher()
    panorama, stats = stitcher.stitch_images(images)
    write_image('output.jpg', panorama)
"""

__version__ = '1.0.0'

from .config import StitchConfig
from .errors import StitchError, InputError, MatchFailure
from .detector import FastDetector, detect_fast, detect_fastr, harris_response
from .descriptor import PatchDescriptor
from .matcher import FeatureMatcher
from .homography import HomographyEstimator, compute_homography_dlt, warp_perspective
from .blending import ImageBlender, MultiImageBlender
from .panorama_stitcher import PanoramaStitcher, StitchStats
from .image_io import read_image, write_image, read_images

__all__ = [
    'StitchConfig',
    'StitchError',
    'InputError',
    'MatchFailure',
    'FastDetector',
    'detect_fast',
    'detect_fastr',
    'harris_response',
    'PatchDescriptor',
    'FeatureMatcher',
    'HomographyEstimator',
    'compute_homography_dlt',
    'warp_perspective',
    'ImageBlender',
    'MultiImageBlender',
    'PanoramaStitcher',
    'StitchStats',
    'read_image',
    'write_image',
    'read_images',
]
