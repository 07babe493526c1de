"""
Pure implementation of image warping and blending for panorama stitching
using only NumPy and SciPy - no OpenCV dependencies.
"""

import logging
from collections import namedtuple

import numpy as np
from scipy.ndimage import distance_transform_edt, gaussian_filter, zoom

from .errors import StitchError
from .homography import apply_homography, warp_perspective


logger = logging.getLogger(__name__)

PYRAMID_LEVELS = 4
MULTI_PADDING = 10
CROP_MARGIN = 5
CROP_LUMA_THRESHOLD = 0.01
LUMA_WEIGHTS = np.array([0.299, 0.587, 0.114])

# 200 megapixels; a near-degenerate homography can blow the canvas up
DEFAULT_MAX_CANVAS_PIXELS = 200_000_000

Canvas = namedtuple('Canvas', ['x_min', 'y_min', 'width', 'height'])


class ImageBlender:
    """
    Warps an image pair into a shared canvas and blends the overlap.

    Supported methods:
        none: the second image overwrites the first where it is valid
        linear: distance-transform feathering
        multiband: Laplacian pyramid blending (Burt & Adelson)
    """

    def __init__(self, method='linear', levels=PYRAMID_LEVELS,
                 max_canvas_pixels=DEFAULT_MAX_CANVAS_PIXELS):
        """
        Initialize Image Blender.

        Args:
            method: 'none', 'linear' or 'multiband'; anything else
                blends linearly
            levels: Pyramid levels used by multiband blending
            max_canvas_pixels: Canvas size above which blending is refused
        """
        self.method = method
        self.levels = levels
        self.max_canvas_pixels = max_canvas_pixels

    def blend_pair(self, img1, img2, H):
        """
        Blend two images using homography H that maps img2 into img1's frame.

        Args:
            img1: First (reference) image (H1 x W1 x C), values in [0, 1]
            img2: Second image (H2 x W2 x C)
            H: Homography matrix (3 x 3)

        Returns:
            blended: Panorama covering both images
            canvas: Canvas describing the output's offset in img1's frame
        """
        canvas = compute_canvas([img1.shape, img2.shape], [np.eye(3), H])
        _check_canvas_size(canvas, self.max_canvas_pixels)

        warped1, mask1 = warp_to_canvas(img1, np.eye(3), canvas)
        warped2, mask2 = warp_to_canvas(img2, H, canvas)

        method = str(self.method).lower()
        if method == 'none':
            blended = blend_none(warped1, warped2, mask2)
        elif method == 'multiband':
            blended = blend_multiband(warped1, warped2, mask1, mask2, self.levels)
        else:
            blended = blend_linear(warped1, warped2, mask1, mask2)

        return blended, canvas


class MultiImageBlender:
    """
    Blender for multiple images (panorama from 3+ images).

    Every image is warped once by its cumulative transform into a common
    padded canvas; contributions are averaged with per-pixel weights.
    """

    def __init__(self, method='linear', padding=MULTI_PADDING,
                 max_canvas_pixels=DEFAULT_MAX_CANVAS_PIXELS):
        self.method = method
        self.padding = padding
        self.max_canvas_pixels = max_canvas_pixels

    def blend_multiple(self, images, transforms):
        """
        Blend multiple images into panorama.

        Args:
            images: List of images (H x W x C)
            transforms: List of homographies mapping each image into the
                first image's frame (transforms[0] is the identity)

        Returns:
            Blended panorama cropped to its valid region
        """
        if len(images) == 0:
            return None

        if len(images) != len(transforms):
            raise ValueError("Need one transform per image")

        canvas = compute_canvas([img.shape for img in images], transforms,
                                padding=self.padding)
        _check_canvas_size(canvas, self.max_canvas_pixels)

        channels = images[0].shape[2] if images[0].ndim == 3 else 1
        accum_image = np.zeros((canvas.height, canvas.width, channels))
        accum_weight = np.zeros((canvas.height, canvas.width))

        feather = str(self.method).lower() == 'linear'

        for image, H in zip(images, transforms):
            warped, mask = warp_to_canvas(image, H, canvas)
            if warped.ndim == 2:
                warped = warped[:, :, np.newaxis]

            weight = distance_weight(mask) if feather else mask

            accum_image += warped * weight[:, :, np.newaxis]
            accum_weight += weight

        # Pixels no image covers keep value 0
        accum_weight[accum_weight == 0] = 1.0
        panorama = accum_image / accum_weight[:, :, np.newaxis]

        if channels == 1:
            panorama = panorama[:, :, 0]

        return crop_to_valid(panorama)


def compute_canvas(shapes, transforms, padding=0):
    """
    Bounding box of all image corners after transformation.

    Corners are pixel centres, so an untransformed W x H image spans
    exactly W x H canvas pixels.

    Args:
        shapes: Image shapes
        transforms: One homography per shape
        padding: Extra pixels on every side

    Returns:
        Canvas(x_min, y_min, width, height)
    """
    all_corners = []
    for shape, H in zip(shapes, transforms):
        h, w = shape[:2]
        corners = np.array([
            [0, 0],
            [w - 1, 0],
            [w - 1, h - 1],
            [0, h - 1]
        ], dtype=np.float64)
        all_corners.append(apply_homography(corners, H))
    all_corners = np.vstack(all_corners)

    if not np.all(np.isfinite(all_corners)):
        raise StitchError("Homography maps image corners to infinity")

    # Tolerance keeps round-off from adding an empty row or column
    x_min = int(np.floor(np.min(all_corners[:, 0]) + 1e-6)) - padding
    x_max = int(np.ceil(np.max(all_corners[:, 0]) - 1e-6)) + padding
    y_min = int(np.floor(np.min(all_corners[:, 1]) + 1e-6)) - padding
    y_max = int(np.ceil(np.max(all_corners[:, 1]) - 1e-6)) + padding

    return Canvas(x_min, y_min, x_max - x_min + 1, y_max - y_min + 1)


def _check_canvas_size(canvas, max_pixels):
    if max_pixels and canvas.width * canvas.height > max_pixels:
        raise StitchError(
            f"Canvas of {canvas.width}x{canvas.height} exceeds "
            f"{max_pixels} pixels; the homography is probably wrong")


def warp_to_canvas(image, H, canvas):
    """
    Warp an image and its validity mask into the canvas.

    Returns:
        warped: Image resampled onto the canvas
        mask: Float mask (canvas height x width), 1 where the image is valid
    """
    translation = np.array([
        [1, 0, -canvas.x_min],
        [0, 1, -canvas.y_min],
        [0, 0, 1]
    ], dtype=np.float64)
    H_canvas = translation @ np.asarray(H, dtype=np.float64)
    output_shape = (canvas.height, canvas.width)

    warped = warp_perspective(image, H_canvas, output_shape)
    ones = np.ones(image.shape[:2])
    mask = (warp_perspective(ones, H_canvas, output_shape) > 0.5).astype(np.float64)

    return warped, mask


def blend_none(img1, img2, mask2):
    """Second image overwrites the first wherever it is valid."""
    panorama = img1.copy()
    valid = mask2 > 0
    panorama[valid] = img2[valid]
    return panorama


def blend_linear(img1, img2, mask1, mask2):
    """
    Linear blending with distance-based feathering.

    Weights fall off towards each image's border and are normalized to
    sum to 1 per pixel.
    """
    weight1 = distance_weight(mask1)
    weight2 = distance_weight(mask2)

    total_weight = weight1 + weight2
    total_weight[total_weight == 0] = 1.0

    if img1.ndim == 3:
        weight1 = weight1[:, :, np.newaxis]
        weight2 = weight2[:, :, np.newaxis]
        total_weight = total_weight[:, :, np.newaxis]

    return (img1 * weight1 + img2 * weight2) / total_weight


def blend_multiband(img1, img2, mask1, mask2, levels=PYRAMID_LEVELS):
    """
    Multiband blending using Laplacian pyramids.

    Each frequency band is blended with a correspondingly blurred mask,
    so low frequencies mix over wide regions and fine detail over narrow
    ones.
    """
    pyr1 = build_laplacian_pyramid(img1, levels)
    pyr2 = build_laplacian_pyramid(img2, levels)

    mask_pyr1 = build_gaussian_pyramid(mask1, levels)
    mask_pyr2 = build_gaussian_pyramid(mask2, levels)

    blended_pyr = []
    for band1, band2, m1, m2 in zip(pyr1, pyr2, mask_pyr1, mask_pyr2):
        total = m1 + m2
        total[total == 0] = 1.0

        if band1.ndim == 3:
            m1 = m1[:, :, np.newaxis]
            m2 = m2[:, :, np.newaxis]
            total = total[:, :, np.newaxis]

        blended_pyr.append((band1 * m1 + band2 * m2) / total)

    panorama = reconstruct_from_pyramid(blended_pyr)

    return np.clip(panorama, 0.0, 1.0)


def distance_weight(mask):
    """
    Feathering weight that falls off towards the mask boundary.

    The distance transform of the mask is normalized to [0, 1] and
    raised to the power 0.5. Masks that are entirely 0 or entirely 1
    are returned unchanged.
    """
    mask = np.asarray(mask, dtype=np.float64)

    if np.all(mask == 0) or np.all(mask == 1):
        return mask

    dist = distance_transform_edt(mask > 0.5)

    max_dist = dist.max()
    if max_dist > 0:
        weight = dist / max_dist
    else:
        weight = mask

    return np.sqrt(weight)


def build_laplacian_pyramid(image, levels=PYRAMID_LEVELS):
    """
    Build Laplacian pyramid (band-pass decomposition), finest first.

    Every level but the last holds image - upsample(downsample(image));
    the last holds the coarsest low-pass residual.
    """
    pyramid = []
    current = np.asarray(image, dtype=np.float64)

    for _ in range(levels - 1):
        down = _downsample(current)
        up = _resize(down, current.shape[:2])
        pyramid.append(current - up)
        current = down

    pyramid.append(current)
    return pyramid


def build_gaussian_pyramid(image, levels=PYRAMID_LEVELS):
    """Build Gaussian pyramid (low-pass decomposition), finest first."""
    pyramid = [np.asarray(image, dtype=np.float64)]

    for _ in range(levels - 1):
        pyramid.append(_downsample(pyramid[-1]))

    return pyramid


def reconstruct_from_pyramid(pyramid):
    """Collapse a Laplacian pyramid back into an image."""
    image = pyramid[-1]

    for band in reversed(pyramid[:-1]):
        image = _resize(image, band.shape[:2]) + band

    return image


def _downsample(image):
    """Blur with sigma 1 and halve each spatial dimension (rounding up)."""
    sigma = (1.0, 1.0, 0.0) if image.ndim == 3 else 1.0
    blurred = gaussian_filter(image, sigma=sigma, mode='nearest')
    h, w = image.shape[:2]
    return _resize(blurred, ((h + 1) // 2, (w + 1) // 2))


def _resize(image, shape):
    """Bilinear resize of the two spatial axes to exactly `shape`."""
    h, w = image.shape[:2]
    if (h, w) == tuple(shape):
        return image.copy()

    factors = [shape[0] / h, shape[1] / w]
    if image.ndim == 3:
        factors.append(1.0)
    return zoom(image, factors, order=1, mode='nearest')


def to_luma(image):
    """Grayscale view of an RGB image using standard weights."""
    if image.ndim == 3:
        return image[..., :3] @ LUMA_WEIGHTS
    return image


def crop_to_valid(image, threshold=CROP_LUMA_THRESHOLD, margin=CROP_MARGIN):
    """
    Crop to the bounding box of pixels brighter than threshold plus margin.

    Args:
        image: Input image
        threshold: Luma above which a pixel holds image data
        margin: Pixels kept around the bounding box

    Returns:
        Cropped image (unchanged when nothing exceeds the threshold)
    """
    valid = to_luma(image) > threshold

    if not np.any(valid):
        return image

    rows = np.nonzero(np.any(valid, axis=1))[0]
    cols = np.nonzero(np.any(valid, axis=0))[0]

    y_min = max(0, rows[0] - margin)
    y_max = min(image.shape[0] - 1, rows[-1] + margin)
    x_min = max(0, cols[0] - margin)
    x_max = min(image.shape[1] - 1, cols[-1] + margin)

    return image[y_min:y_max + 1, x_min:x_max + 1]
