"""
Configuration constants for PalmGestureSelector.

This module contains all tunable parameters for palm feature extraction,
selection direction blending, and the selection state machine.
"""

from dataclasses import dataclass, field
from typing import Final, Optional


# Geometry
GEOMETRY_EPSILON: Final[float] = 1e-6  # Vectors shorter than this are treated as zero
EIGEN_MAX_SWEEPS: Final[int] = 32  # Jacobi sweeps before giving up (3x3 converges in < 10)
EIGEN_TOLERANCE: Final[float] = 1e-12  # Off-diagonal norm relative to matrix norm
PLANE_DEGENERACY_RATIO: Final[float] = 1e-6  # Middle/largest eigenvalue below this = no plane

# =============================================================================
# Selection direction blend
# =============================================================================
# Pointing direction is a weighted blend of:
# 1. Hand position relative to the head
# 2. Palm facing direction
# 3. Device orientation (where the user's face is heading)
DIRECTION_HAND_WEIGHT: Final[float] = 0.4
DIRECTION_PALM_WEIGHT: Final[float] = 0.4
DIRECTION_DEVICE_WEIGHT: Final[float] = 0.2
DEVICE_REFERENCE_AXIS: Final[tuple[float, float, float]] = (0.0, 1.0, 0.0)  # Device-local axis

# Palm visibility (|dot(palm normal, view ray)| remapped to [0, 1])
PALM_VISIBILITY_LOWER: Final[float] = 0.2  # Edge-on below this
PALM_VISIBILITY_UPPER: Final[float] = 0.8  # Fully visible above this

# =============================================================================
# Selection state machine
# =============================================================================
SELECTION_WINDOW_SIZE: Final[int] = 20  # Records kept for smoothing and drop detection
SELECTION_DROP_WINDOW_SIZE: Final[int] = 5  # Span of the straightness drop (frames)
SELECTION_GRASP_THRESHOLD: Final[float] = 0.3  # Straightness drop that counts as a grasp
SELECTION_UNGRASP_THRESHOLD: Final[float] = 0.5  # Re-open above this leaves Confirmed
SELECTION_SELECTING_THRESHOLD: Final[float] = 0.6  # Open above this starts aiming
SELECTION_CAPTURE_OFFSET: Final[int] = SELECTION_DROP_WINDOW_SIZE  # Frames before drop point

# Logging
LOG_FILENAME: Final[str] = "palm_gesture_selector.log"
LOG_DIR_ENV: Final[str] = "PALM_GESTURE_SELECTOR_LOG_DIR"  # Overrides the log directory
LOG_DIR_DEFAULT: Final[str] = "~/.palm_gesture_selector/logs"
LOG_MAX_BYTES: Final[int] = 10 * 1024 * 1024  # 10 MB
LOG_BACKUP_COUNT: Final[int] = 3

# Exit codes
EXIT_SUCCESS: Final[int] = 0
EXIT_PROFILE_ERROR: Final[int] = 1
EXIT_INPUT_ERROR: Final[int] = 2
EXIT_RUNTIME_ERROR: Final[int] = 3


@dataclass
class SelectionThresholds:
    """Container for selection state machine window sizes and thresholds."""

    window_size: int = SELECTION_WINDOW_SIZE
    drop_window_size: int = SELECTION_DROP_WINDOW_SIZE
    grasp_threshold: float = SELECTION_GRASP_THRESHOLD
    ungrasp_threshold: float = SELECTION_UNGRASP_THRESHOLD
    selecting_threshold: float = SELECTION_SELECTING_THRESHOLD
    capture_offset: Optional[int] = None  # None = drop_window_size

    def __post_init__(self):
        if self.drop_window_size < 1:
            raise ValueError(f"drop_window_size must be >= 1, got {self.drop_window_size}")
        if self.window_size <= self.drop_window_size:
            raise ValueError(
                f"window_size ({self.window_size}) must exceed "
                f"drop_window_size ({self.drop_window_size})"
            )
        if self.capture_offset is None:
            self.capture_offset = self.drop_window_size
        if not 1 <= self.capture_offset <= self.drop_window_size:
            raise ValueError(
                f"capture_offset must be in [1, {self.drop_window_size}], "
                f"got {self.capture_offset}"
            )


@dataclass
class DirectionBlendConfig:
    """
    Weights for blending the pointing direction.

    Each term is normalized before weighting and the sum is re-normalized,
    so only the ratio between weights matters.
    """

    hand_weight: float = DIRECTION_HAND_WEIGHT  # Device -> hand vector
    palm_weight: float = DIRECTION_PALM_WEIGHT  # Oriented palm normal
    device_weight: float = DIRECTION_DEVICE_WEIGHT  # Device reference axis
    device_axis: tuple[float, float, float] = field(default=DEVICE_REFERENCE_AXIS)

    def __post_init__(self):
        weights = (self.hand_weight, self.palm_weight, self.device_weight)
        if any(w < 0 for w in weights):
            raise ValueError(f"Direction weights must be non-negative, got {weights}")
        if not any(w > 0 for w in weights):
            raise ValueError("At least one direction weight must be positive")
        self.device_axis = tuple(float(c) for c in self.device_axis)
        if len(self.device_axis) != 3:
            raise ValueError(f"device_axis must have 3 components, got {self.device_axis}")

    @classmethod
    def palm_only(cls) -> "DirectionBlendConfig":
        """Point straight along the oriented palm normal."""
        return cls(hand_weight=0.0, palm_weight=1.0, device_weight=0.0)


@dataclass
class VisibilityRange:
    """Range of |dot(palm normal, view ray)| mapped onto [0, 1] visibility."""

    lower: float = PALM_VISIBILITY_LOWER
    upper: float = PALM_VISIBILITY_UPPER

    def __post_init__(self):
        if not self.lower < self.upper:
            raise ValueError(f"lower ({self.lower}) must be below upper ({self.upper})")
