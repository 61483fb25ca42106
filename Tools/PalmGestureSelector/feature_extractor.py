"""
Per-frame geometric gesture features.

Converts one hand's joint positions plus the device pose into a palm
center, pointing direction, selection cone half-angle and finger
straightness. The extractor holds configuration only, so one instance
can be shared across hands and threads.
"""

from dataclasses import dataclass
from itertools import combinations
from typing import Optional

import numpy as np

from .config import GEOMETRY_EPSILON, DirectionBlendConfig, VisibilityRange
from .geometry import (
    angle_between,
    cross,
    dot,
    fit_plane,
    length,
    normalize_or_zero,
    scale_and_clamp,
)
from .hand_skeleton import DevicePose, HandJoints, JointName, REQUIRED_JOINTS
from .logger import get_logger

logger = get_logger("FeatureExtractor")


# Palm-region joints (fingertips and intermediate tips excluded)
PALM_JOINTS: tuple[JointName, ...] = (
    JointName.WRIST,
    JointName.THUMB_KNUCKLE, JointName.THUMB_INTERMEDIATE_BASE,
    JointName.INDEX_METACARPAL, JointName.INDEX_KNUCKLE, JointName.INDEX_INTERMEDIATE_BASE,
    JointName.MIDDLE_METACARPAL, JointName.MIDDLE_KNUCKLE, JointName.MIDDLE_INTERMEDIATE_BASE,
    JointName.RING_METACARPAL, JointName.RING_KNUCKLE, JointName.RING_INTERMEDIATE_BASE,
    JointName.LITTLE_METACARPAL, JointName.LITTLE_KNUCKLE, JointName.LITTLE_INTERMEDIATE_BASE,
)

FINGERTIP_JOINTS: tuple[JointName, ...] = (
    JointName.THUMB_TIP,
    JointName.INDEX_TIP,
    JointName.MIDDLE_TIP,
    JointName.RING_TIP,
    JointName.LITTLE_TIP,
)

# Joint chains walked for straightness, thumb first
FINGER_CHAINS: tuple[tuple[JointName, ...], ...] = (
    (JointName.WRIST, JointName.THUMB_KNUCKLE, JointName.THUMB_INTERMEDIATE_BASE,
     JointName.THUMB_INTERMEDIATE_TIP, JointName.THUMB_TIP),
    (JointName.WRIST, JointName.INDEX_METACARPAL, JointName.INDEX_KNUCKLE,
     JointName.INDEX_INTERMEDIATE_BASE, JointName.INDEX_INTERMEDIATE_TIP, JointName.INDEX_TIP),
    (JointName.WRIST, JointName.MIDDLE_METACARPAL, JointName.MIDDLE_KNUCKLE,
     JointName.MIDDLE_INTERMEDIATE_BASE, JointName.MIDDLE_INTERMEDIATE_TIP, JointName.MIDDLE_TIP),
    (JointName.WRIST, JointName.RING_METACARPAL, JointName.RING_KNUCKLE,
     JointName.RING_INTERMEDIATE_BASE, JointName.RING_INTERMEDIATE_TIP, JointName.RING_TIP),
    (JointName.WRIST, JointName.LITTLE_METACARPAL, JointName.LITTLE_KNUCKLE,
     JointName.LITTLE_INTERMEDIATE_BASE, JointName.LITTLE_INTERMEDIATE_TIP, JointName.LITTLE_TIP),
)


class DegeneratePlaneFitError(ArithmeticError):
    """Raised when no pointing direction can be formed for a frame."""
    pass


@dataclass
class GestureFeatures:
    """
    Geometric features of one hand in one frame.

    Attributes:
        center: Centroid of the palm joints.
        direction: Unit pointing direction.
        cone_angle: Selection cone half-angle in radians (>= 0).
        straightness: Mean finger straightness in [-1, 1]; 1 = open palm.
        palm_normal: Oriented palm normal (zero if the plane fit was degenerate).
        palm_radius: Largest palm joint distance from the center.
        palm_visibility: How squarely the palm faces the viewer axis, in [0, 1].
        finger_straightness: Per-finger straightness, thumb first.
    """
    center: np.ndarray
    direction: np.ndarray
    cone_angle: float
    straightness: float
    palm_normal: np.ndarray
    palm_radius: float = 0.0
    palm_visibility: float = 0.0
    finger_straightness: tuple[float, ...] = ()

    @property
    def has_palm_normal(self) -> bool:
        return length(self.palm_normal) >= GEOMETRY_EPSILON


def palm_orientation(joints: HandJoints) -> np.ndarray:
    """
    Orientation reference from the diagonals of the palm quadrilateral.

    Returns the normalized cross product of (little knuckle - index
    metacarpal) and (little metacarpal - index knuckle), or the zero
    vector if the diagonals are parallel.
    """
    upper_diagonal = joints.position(JointName.LITTLE_KNUCKLE) - joints.position(JointName.INDEX_METACARPAL)
    lower_diagonal = joints.position(JointName.LITTLE_METACARPAL) - joints.position(JointName.INDEX_KNUCKLE)
    return normalize_or_zero(cross(upper_diagonal, lower_diagonal))


def cone_half_angle(tips: list[np.ndarray], viewpoint: np.ndarray) -> float:
    """
    Widest angle any two points subtend as seen from the viewpoint.

    Points coinciding with the viewpoint are ignored.
    """
    rays = [normalize_or_zero(tip - viewpoint) for tip in tips]
    rays = [ray for ray in rays if ray.any()]
    max_angle = 0.0
    for a, b in combinations(rays, 2):
        max_angle = max(max_angle, angle_between(a, b))
    return max_angle


def chain_straightness(points: list[np.ndarray]) -> float:
    """
    Product of dot products between consecutive segment directions.

    A colinear chain gives 1; every bend multiplies in its cosine. A
    zero-length segment has no direction and drives the product to 0.
    """
    segments = [normalize_or_zero(b - a) for a, b in zip(points, points[1:])]
    straightness = 1.0
    for first, second in zip(segments, segments[1:]):
        straightness *= dot(first, second)
    return straightness


class GestureFeatureExtractor:
    """
    Extracts palm pointing features from a hand skeleton.

    Steps per frame:
    1. Fit a plane through the palm joints (centroid + least-variance axis)
    2. Orient the normal to agree with the palm diagonal cross product
    3. Blend the oriented normal with the device->hand ray and a device axis
    4. Cone half-angle = widest fingertip spread seen from the device
    5. Straightness = mean over fingers of consecutive segment alignment

    Usage:
        extractor = GestureFeatureExtractor()

        # Each frame:
        features = extractor.extract(hand_joints, device_pose)
    """

    def __init__(
        self,
        blend: Optional[DirectionBlendConfig] = None,
        visibility: Optional[VisibilityRange] = None
    ):
        """
        Initialize extractor.

        Args:
            blend: Direction blend weights, or None for defaults.
            visibility: Palm visibility remap range, or None for defaults.
        """
        self.blend = blend or DirectionBlendConfig()
        self.visibility = visibility or VisibilityRange()

        logger.debug(
            f"GestureFeatureExtractor initialized (hand={self.blend.hand_weight}, "
            f"palm={self.blend.palm_weight}, device={self.blend.device_weight})"
        )

    def extract(self, joints: HandJoints, device: DevicePose) -> GestureFeatures:
        """
        Compute gesture features for one frame.

        Args:
            joints: Complete joint set of one hand. Untracked joints must
                    already be resolved by the caller.
            device: Device pose in the same world frame.

        Returns:
            GestureFeatures for this frame.

        Raises:
            IncompleteJointSetError: If a required joint is missing.
            DegeneratePlaneFitError: If no pointing direction can be formed.
        """
        joints.require(REQUIRED_JOINTS)

        palm = fit_plane(joints.position(j) for j in PALM_JOINTS)
        palm_normal = palm.normal
        if palm.is_degenerate:
            logger.debug("Palm joints do not span a plane, dropping palm term")
        elif dot(palm_orientation(joints), palm_normal) < 0:
            palm_normal = -palm_normal

        view = normalize_or_zero(joints.anchor_position - device.position)
        direction = self._blend_direction(view, palm_normal, device)

        visibility = 0.0
        if not palm.is_degenerate:
            visibility = scale_and_clamp(
                abs(dot(palm_normal, view)), self.visibility.lower, self.visibility.upper
            )

        tips = [joints.position(j) for j in FINGERTIP_JOINTS]
        cone_angle = cone_half_angle(tips, device.position)

        per_finger = tuple(
            chain_straightness([joints.position(j) for j in chain]) for chain in FINGER_CHAINS
        )
        straightness = sum(per_finger) / len(per_finger)

        return GestureFeatures(
            center=palm.centroid,
            direction=direction,
            cone_angle=cone_angle,
            straightness=straightness,
            palm_normal=palm_normal,
            palm_radius=palm.radius,
            palm_visibility=visibility,
            finger_straightness=per_finger
        )

    def _blend_direction(
        self,
        view: np.ndarray,
        palm_normal: np.ndarray,
        device: DevicePose
    ) -> np.ndarray:
        """Weighted sum of the normalized direction terms, re-normalized."""
        blended = (
            self.blend.hand_weight * view
            + self.blend.palm_weight * palm_normal
            + self.blend.device_weight * normalize_or_zero(device.axis(self.blend.device_axis))
        )
        direction = normalize_or_zero(blended)
        if not direction.any():
            raise DegeneratePlaneFitError(
                "Cannot form a pointing direction (degenerate palm and no other usable term)"
            )
        return direction
