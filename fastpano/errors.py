"""
Errors raised by the stitching pipeline.

Both derive from ValueError so callers that already guard stitching with
``except ValueError`` keep working.
"""


class StitchError(ValueError):
    """Base class for failures that abort stitching of one image set."""


class InputError(StitchError):
    """An image set cannot be stitched as given (e.g. fewer than 2 images)."""


class MatchFailure(StitchError):
    """Too few correspondences or RANSAC inliers to align an image pair."""

    def __init__(self, message, num_matches=0, num_inliers=0):
        super().__init__(message)
        self.num_matches = num_matches
        self.num_inliers = num_inliers
