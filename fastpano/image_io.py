"""
Image I/O utilities using PIL (Pillow)
No OpenCV dependencies.

Images are handed to the pipeline as float RGB arrays in [0, 1].
"""

import logging
from pathlib import Path

import numpy as np
from PIL import Image


logger = logging.getLogger(__name__)

MAX_DIMENSION = 750


def read_image(filepath, max_dimension=MAX_DIMENSION):
    """
    Read and prepare an image from file.

    Args:
        filepath: Path to image file
        max_dimension: Larger images are downscaled to this size
            (None disables resizing)

    Returns:
        Image as float array (H x W x 3) with values in [0, 1]
    """
    try:
        with Image.open(filepath) as img:
            img_array = np.array(img)
    except Exception as e:
        raise IOError(f"Failed to read image from {filepath}: {str(e)}")

    try:
        return prepare_image(img_array, max_dimension)
    except ValueError as e:
        raise IOError(f"Unsupported image {filepath}: {str(e)}")


def prepare_image(image, max_dimension=MAX_DIMENSION):
    """
    Convert an array to float RGB in [0, 1] and limit its size.

    Grayscale images are replicated to three channels, alpha channels
    are dropped.
    """
    image = np.asarray(image)

    if image.dtype == np.uint8:
        image = image.astype(np.float64) / 255.0
    elif image.dtype == np.uint16:
        image = image.astype(np.float64) / 65535.0
    else:
        image = image.astype(np.float64)

    if image.ndim == 2:
        image = np.stack([image] * 3, axis=2)
    elif image.ndim == 3 and image.shape[2] == 4:
        image = image[:, :, :3]
    elif image.ndim == 3 and image.shape[2] == 1:
        image = np.concatenate([image] * 3, axis=2)
    elif image.ndim != 3 or image.shape[2] != 3:
        raise ValueError(f"unsupported image shape {image.shape}")

    if not np.all(np.isfinite(image)):
        raise ValueError("image contains NaN or Inf values")

    if max_dimension:
        largest = max(image.shape[:2])
        if largest > max_dimension:
            old_shape = image.shape[:2]
            image = resize_image(image, scale=max_dimension / largest)
            logger.info("Resized image %dx%d -> %dx%d",
                        old_shape[1], old_shape[0], image.shape[1], image.shape[0])

    return image


def write_image(filepath, image):
    """
    Write image to file.

    Args:
        filepath: Path to save image
        image: Float image with values in [0, 1] (or uint8)
    """
    try:
        if image.dtype != np.uint8:
            image = np.round(np.clip(image, 0.0, 1.0) * 255).astype(np.uint8)

        if image.ndim == 2:
            img = Image.fromarray(image)
        else:
            img = Image.fromarray(np.ascontiguousarray(image[:, :, :3]))

        Path(filepath).parent.mkdir(parents=True, exist_ok=True)
        img.save(filepath)

    except Exception as e:
        raise IOError(f"Failed to write image to {filepath}: {str(e)}")


def read_images(filepaths, max_dimension=MAX_DIMENSION):
    """
    Read multiple images.

    Args:
        filepaths: List of image file paths

    Returns:
        List of prepared images
    """
    images = [read_image(filepath, max_dimension) for filepath in filepaths]
    logger.info("Loaded %d images successfully", len(images))
    return images


def resize_image(image, scale=1.0, width=None, height=None):
    """
    Resize a float image with bilinear resampling.

    Args:
        image: Input image (H x W x C) with values in [0, 1]
        scale: Scale factor (if width and height not specified)
        width: Target width (optional)
        height: Target height (optional)

    Returns:
        Resized float image
    """
    if width is not None and height is not None:
        new_size = (width, height)
    else:
        h, w = image.shape[:2]
        new_size = (max(1, int(round(w * scale))), max(1, int(round(h * scale))))

    # Resample each channel in 32-bit float mode to keep precision
    channels = [
        np.asarray(Image.fromarray(image[:, :, c].astype(np.float32))
                   .resize(new_size, Image.Resampling.BILINEAR))
        for c in range(image.shape[2])
    ]

    return np.clip(np.stack(channels, axis=2).astype(np.float64), 0.0, 1.0)
