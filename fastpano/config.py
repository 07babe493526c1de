"""
Configuration for the stitching pipeline.

A single immutable value carries every tunable parameter. Components
receive it explicitly and never keep state between calls.
"""

import json
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional


DETECTOR_KINDS = ('FAST', 'FASTR')
BLEND_METHODS = ('none', 'linear', 'multiband')


@dataclass(frozen=True)
class StitchConfig:
    """Parameters for detection, matching, RANSAC and blending."""

    detector_kind: str = 'FASTR'
    fast_threshold: float = 0.15
    fast_arc_length: int = 12
    harris_threshold: float = 0.005
    harris_window: Optional[int] = None
    max_corners: int = 500

    match_ratio: float = 0.75
    match_max_distance: float = 0.7

    ransac_max_trials: int = 500
    ransac_confidence: float = 0.999
    ransac_reproj_threshold: float = 3.0
    ransac_seed: Optional[int] = None

    blend_method: str = 'linear'

    def __post_init__(self):
        kind = str(self.detector_kind).upper()
        if kind not in DETECTOR_KINDS:
            raise ValueError(f"Unknown detector kind: {self.detector_kind}")
        object.__setattr__(self, 'detector_kind', kind)

        method = str(self.blend_method).lower()
        if method not in BLEND_METHODS:
            raise ValueError(f"Unknown blend method: {self.blend_method}")
        object.__setattr__(self, 'blend_method', method)

        if not 0 < self.fast_threshold < 1:
            raise ValueError("fast_threshold must lie in (0, 1)")
        if not 1 <= self.fast_arc_length <= 16:
            raise ValueError("fast_arc_length must lie in [1, 16]")
        if self.harris_window is not None and self.harris_window < 1:
            raise ValueError("harris_window must be positive")
        if self.max_corners < 1:
            raise ValueError("max_corners must be positive")
        if not 0 < self.match_ratio <= 1:
            raise ValueError("match_ratio must lie in (0, 1]")
        if self.match_max_distance <= 0:
            raise ValueError("match_max_distance must be positive")
        if self.ransac_max_trials < 1:
            raise ValueError("ransac_max_trials must be positive")
        if not 0 < self.ransac_confidence < 1:
            raise ValueError("ransac_confidence must lie in (0, 1)")
        if self.ransac_reproj_threshold <= 0:
            raise ValueError("ransac_reproj_threshold must be positive")

    @classmethod
    def from_file(cls, config_path: str) -> 'StitchConfig':
        """Load a config from JSON; keys that are not config fields are ignored."""
        with open(config_path, 'r') as f:
            config_data = json.load(f)
        return cls.from_dict(config_data)

    @classmethod
    def from_dict(cls, config_data: Dict[str, Any]) -> 'StitchConfig':
        known = {field.name for field in fields(cls)}
        return cls(**{key: value for key, value in config_data.items() if key in known})

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def save_to_file(self, config_path: str):
        path = Path(config_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)
