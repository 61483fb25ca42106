"""
Hand skeleton and device pose data for PalmGestureSelector.

One HandJoints snapshot describes a single tracked hand in one frame;
one DevicePose describes the viewer (head/device) in the same world frame.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Mapping, Optional

import numpy as np

from .config import GEOMETRY_EPSILON
from .geometry import as_vector
from .logger import get_logger

logger = get_logger("HandSkeleton")


class JointName(Enum):
    """Hand skeleton joints reported by the hand tracking provider."""
    WRIST = "wrist"
    THUMB_KNUCKLE = "thumbKnuckle"
    THUMB_INTERMEDIATE_BASE = "thumbIntermediateBase"
    THUMB_INTERMEDIATE_TIP = "thumbIntermediateTip"
    THUMB_TIP = "thumbTip"
    INDEX_METACARPAL = "indexFingerMetacarpal"
    INDEX_KNUCKLE = "indexFingerKnuckle"
    INDEX_INTERMEDIATE_BASE = "indexFingerIntermediateBase"
    INDEX_INTERMEDIATE_TIP = "indexFingerIntermediateTip"
    INDEX_TIP = "indexFingerTip"
    MIDDLE_METACARPAL = "middleFingerMetacarpal"
    MIDDLE_KNUCKLE = "middleFingerKnuckle"
    MIDDLE_INTERMEDIATE_BASE = "middleFingerIntermediateBase"
    MIDDLE_INTERMEDIATE_TIP = "middleFingerIntermediateTip"
    MIDDLE_TIP = "middleFingerTip"
    RING_METACARPAL = "ringFingerMetacarpal"
    RING_KNUCKLE = "ringFingerKnuckle"
    RING_INTERMEDIATE_BASE = "ringFingerIntermediateBase"
    RING_INTERMEDIATE_TIP = "ringFingerIntermediateTip"
    RING_TIP = "ringFingerTip"
    LITTLE_METACARPAL = "littleFingerMetacarpal"
    LITTLE_KNUCKLE = "littleFingerKnuckle"
    LITTLE_INTERMEDIATE_BASE = "littleFingerIntermediateBase"
    LITTLE_INTERMEDIATE_TIP = "littleFingerIntermediateTip"
    LITTLE_TIP = "littleFingerTip"
    FOREARM_WRIST = "forearmWrist"
    FOREARM_ARM = "forearmArm"


# Joints the feature extractor needs every frame (forearm joints are optional)
REQUIRED_JOINTS: tuple[JointName, ...] = tuple(
    j for j in JointName if j not in (JointName.FOREARM_WRIST, JointName.FOREARM_ARM)
)


class Chirality(Enum):
    """Which hand a joint stream belongs to."""
    LEFT = "left"
    RIGHT = "right"


class IncompleteJointSetError(ValueError):
    """Raised when a frame is missing joints the caller was required to supply."""

    def __init__(self, missing: Iterable[JointName]):
        self.missing = tuple(missing)
        names = ", ".join(j.value for j in self.missing)
        super().__init__(f"Incomplete joint set, missing: {names}")


def translation(transform: np.ndarray) -> np.ndarray:
    """Translation column of a 4x4 homogeneous transform."""
    return np.asarray(transform, dtype=np.float64)[:3, 3].copy()


@dataclass
class HandJoints:
    """
    World-space joint positions of one hand for one frame.

    Attributes:
        positions: Joint -> 3D position.
        chirality: Left or right hand.
        tracked: Joint -> tracked flag. Joints without an entry count as tracked.
        origin: Hand anchor position. Defaults to the wrist position.
    """
    positions: dict[JointName, np.ndarray]
    chirality: Chirality = Chirality.RIGHT
    tracked: dict[JointName, bool] = field(default_factory=dict)
    origin: Optional[np.ndarray] = None

    def __post_init__(self):
        self.positions = {joint: as_vector(p) for joint, p in self.positions.items()}
        if self.origin is not None:
            self.origin = as_vector(self.origin)

    def position(self, joint: JointName) -> np.ndarray:
        """Get joint position."""
        return self.positions[joint]

    def is_tracked(self, joint: JointName) -> bool:
        return joint in self.positions and self.tracked.get(joint, True)

    @property
    def anchor_position(self) -> np.ndarray:
        """Hand anchor position, falling back to the wrist."""
        if self.origin is not None:
            return self.origin
        return self.positions[JointName.WRIST]

    def require(self, joints: Iterable[JointName] = REQUIRED_JOINTS) -> None:
        """
        Check that every listed joint has a position.

        Raises:
            IncompleteJointSetError: If any joint is missing.
        """
        missing = [j for j in joints if j not in self.positions]
        if missing:
            raise IncompleteJointSetError(missing)

    def resolve_untracked(self, previous: Optional["HandJoints"] = None) -> "HandJoints":
        """
        Replace the positions of untracked joints.

        Each untracked joint takes the previous frame's position when one
        is available, otherwise the zero vector. Joints missing from
        positions are left missing so that require() still catches them.

        Args:
            previous: Last resolved frame of the same hand, if any.

        Returns:
            New HandJoints in which every joint counts as tracked.
        """
        positions = dict(self.positions)
        resolved = []
        for joint in self.positions:
            if self.is_tracked(joint):
                continue
            if previous is not None and joint in previous.positions:
                positions[joint] = previous.positions[joint].copy()
            else:
                positions[joint] = np.zeros(3)
            resolved.append(joint)

        if resolved:
            logger.debug(f"Resolved {len(resolved)} untracked joints ({self.chirality.value} hand)")

        return HandJoints(
            positions=positions,
            chirality=self.chirality,
            tracked={},
            origin=self.origin
        )

    @classmethod
    def from_anchor_transforms(
        cls,
        origin_from_anchor: np.ndarray,
        anchor_from_joint: Mapping[JointName, np.ndarray],
        tracked: Optional[Mapping[JointName, bool]] = None,
        chirality: Chirality = Chirality.RIGHT
    ) -> "HandJoints":
        """
        Build world positions from a hand anchor and per-joint transforms.

        Args:
            origin_from_anchor: 4x4 world-from-hand-anchor transform.
            anchor_from_joint: Joint -> 4x4 anchor-from-joint transform.
            tracked: Optional joint -> tracked flag.
            chirality: Left or right hand.
        """
        world_from_anchor = np.asarray(origin_from_anchor, dtype=np.float64)
        positions = {
            joint: translation(world_from_anchor @ np.asarray(transform, dtype=np.float64))
            for joint, transform in anchor_from_joint.items()
        }
        return cls(
            positions=positions,
            chirality=chirality,
            tracked=dict(tracked or {}),
            origin=translation(world_from_anchor)
        )


def quaternion_to_matrix(quaternion: Iterable[float]) -> np.ndarray:
    """
    Convert a (w, x, y, z) quaternion to a 3x3 rotation matrix.

    The quaternion is normalized first.

    Raises:
        ValueError: If the quaternion is zero or not finite.
    """
    q = np.asarray(quaternion, dtype=np.float64).reshape(-1)
    if q.shape != (4,):
        raise ValueError(f"Expected a (w, x, y, z) quaternion, got shape {q.shape}")
    norm = np.linalg.norm(q)
    if not np.isfinite(norm) or norm < GEOMETRY_EPSILON:
        raise ValueError(f"Quaternion cannot be normalized: {q.tolist()}")
    w, x, y, z = q / norm
    return np.array([
        [1 - 2 * (y * y + z * z), 2 * (x * y - w * z), 2 * (x * z + w * y)],
        [2 * (x * y + w * z), 1 - 2 * (x * x + z * z), 2 * (y * z - w * x)],
        [2 * (x * z - w * y), 2 * (y * z + w * x), 1 - 2 * (x * x + y * y)]
    ])


@dataclass
class DevicePose:
    """
    Viewer (head/device) pose in the world frame.

    Attributes:
        position: Device position.
        rotation: 3x3 world-from-device rotation.
    """
    position: np.ndarray
    rotation: np.ndarray = field(default_factory=lambda: np.eye(3))

    def __post_init__(self):
        self.position = as_vector(self.position)
        self.rotation = np.asarray(self.rotation, dtype=np.float64)
        if self.rotation.shape != (3, 3):
            raise ValueError(f"Expected a 3x3 rotation, got shape {self.rotation.shape}")

    def axis(self, local) -> np.ndarray:
        """Rotate a device-local direction into the world frame."""
        return self.rotation @ as_vector(local)

    @classmethod
    def from_matrix(cls, origin_from_device: np.ndarray) -> "DevicePose":
        """Create from a 4x4 world-from-device transform."""
        m = np.asarray(origin_from_device, dtype=np.float64)
        return cls(position=m[:3, 3].copy(), rotation=m[:3, :3].copy())

    @classmethod
    def from_quaternion(cls, position, quaternion: Iterable[float]) -> "DevicePose":
        """Create from a position and a (w, x, y, z) orientation quaternion."""
        return cls(position=position, rotation=quaternion_to_matrix(quaternion))
