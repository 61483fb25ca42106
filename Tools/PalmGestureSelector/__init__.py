"""
PalmGestureSelector - open-palm point-and-grasp selection from 3D hand joints.

Extracts palm geometry from a tracked hand skeleton each frame and turns
it into an Idle -> Aiming -> Confirmed selection with a pointing cone.
"""

__version__ = "1.0.0"
__author__ = "AROverlay Team"

from .config import DirectionBlendConfig, SelectionThresholds, VisibilityRange
from .geometry import PalmPlane, fit_plane, scale_and_clamp, within_cone
from .hand_skeleton import Chirality, DevicePose, HandJoints, IncompleteJointSetError, JointName
from .feature_extractor import DegeneratePlaneFitError, GestureFeatureExtractor, GestureFeatures
from .selection_state_machine import (
    SelectionEvent,
    SelectionOutput,
    SelectionState,
    SelectionStateMachine,
)
from .hand_tracker import HandSelectionTracker
from .profile_loader import ProfileLoadError, SelectorProfile, create_default_profile, load_profile

__all__ = [
    "DirectionBlendConfig",
    "SelectionThresholds",
    "VisibilityRange",
    "PalmPlane",
    "fit_plane",
    "scale_and_clamp",
    "within_cone",
    "Chirality",
    "DevicePose",
    "HandJoints",
    "IncompleteJointSetError",
    "JointName",
    "DegeneratePlaneFitError",
    "GestureFeatureExtractor",
    "GestureFeatures",
    "SelectionEvent",
    "SelectionOutput",
    "SelectionState",
    "SelectionStateMachine",
    "HandSelectionTracker",
    "ProfileLoadError",
    "SelectorProfile",
    "create_default_profile",
    "load_profile",
]
