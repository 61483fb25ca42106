"""Synthetic hand skeletons shared by the test modules."""

import math
from typing import Optional

import numpy as np
import pytest

from PalmGestureSelector.hand_skeleton import Chirality, DevicePose, HandJoints, JointName

# In-plane angle of each finger ray (radians from +y toward +x)
FINGER_ANGLES = {
    "thumb": -0.9,
    "index": -0.15,
    "middle": 0.0,
    "ring": 0.15,
    "little": 0.3,
}

# Distance of each joint from the wrist along an open finger
THUMB_LAYOUT = (
    (JointName.THUMB_KNUCKLE, 0.03),
    (JointName.THUMB_INTERMEDIATE_BASE, 0.06),
    (JointName.THUMB_INTERMEDIATE_TIP, 0.09),
    (JointName.THUMB_TIP, 0.115),
)
FINGER_LAYOUTS = {
    "index": (JointName.INDEX_METACARPAL, JointName.INDEX_KNUCKLE, JointName.INDEX_INTERMEDIATE_BASE,
              JointName.INDEX_INTERMEDIATE_TIP, JointName.INDEX_TIP),
    "middle": (JointName.MIDDLE_METACARPAL, JointName.MIDDLE_KNUCKLE, JointName.MIDDLE_INTERMEDIATE_BASE,
               JointName.MIDDLE_INTERMEDIATE_TIP, JointName.MIDDLE_TIP),
    "ring": (JointName.RING_METACARPAL, JointName.RING_KNUCKLE, JointName.RING_INTERMEDIATE_BASE,
             JointName.RING_INTERMEDIATE_TIP, JointName.RING_TIP),
    "little": (JointName.LITTLE_METACARPAL, JointName.LITTLE_KNUCKLE, JointName.LITTLE_INTERMEDIATE_BASE,
               JointName.LITTLE_INTERMEDIATE_TIP, JointName.LITTLE_TIP),
}
FINGER_DISTANCES = (0.03, 0.09, 0.12, 0.145, 0.165)

PALM_DOWN = np.array([0.0, 0.0, -1.0])


def _bent_chain(ray: np.ndarray, points: list, lengths: list, curl: float) -> list:
    """Continue a chain from its last point, bending each segment further toward -z."""
    chain = []
    current = points[-1]
    for k, seg_length in enumerate(lengths, start=1):
        direction = math.cos(k * curl) * ray + math.sin(k * curl) * PALM_DOWN
        current = current + seg_length * direction
        chain.append(current)
    return chain


def build_hand(
    curl: float = 0.0,
    rotation: Optional[np.ndarray] = None,
    offset=(0.0, 0.0, 0.0),
    chirality: Chirality = Chirality.RIGHT,
    collinear: bool = False
) -> HandJoints:
    """
    Hand lying in the z=0 plane with fingers along +y, wrist at the origin.

    Each finger is a straight ray from the wrist; curl bends the joints
    past the knuckle (past the thumb intermediate base) toward -z by curl
    radians per segment. With curl=0 every finger chain is colinear.
    The palm diagonals make the palm orientation point along -z.
    """
    positions = {JointName.WRIST: np.zeros(3)}

    for name, angle in FINGER_ANGLES.items():
        if collinear:
            angle = 0.0
        ray = np.array([math.sin(angle), math.cos(angle), 0.0])

        if name == "thumb":
            joints = [j for j, _ in THUMB_LAYOUT]
            distances = [d for _, d in THUMB_LAYOUT]
        else:
            joints = list(FINGER_LAYOUTS[name])
            distances = list(FINGER_DISTANCES)

        # First two joints stay on the ray, the rest bend with curl
        straight = [d * ray for d in distances[:2]]
        lengths = [b - a for a, b in zip(distances[1:], distances[2:])]
        bent = _bent_chain(ray, straight, lengths, curl)
        for joint, point in zip(joints, straight + bent):
            positions[joint] = point

    rotation = np.eye(3) if rotation is None else np.asarray(rotation, dtype=float)
    offset = np.asarray(offset, dtype=float)
    positions = {j: rotation @ p + offset for j, p in positions.items()}
    return HandJoints(positions=positions, chirality=chirality)


def rotation_y(angle: float) -> np.ndarray:
    c, s = math.cos(angle), math.sin(angle)
    return np.array([[c, 0.0, s], [0.0, 1.0, 0.0], [-s, 0.0, c]])


@pytest.fixture
def make_hand():
    """Factory for synthetic hands (see build_hand)."""
    return build_hand


@pytest.fixture
def rotate_y():
    return rotation_y


@pytest.fixture
def device():
    """Viewer half a meter behind the hand (+z), looking down -z."""
    return DevicePose(position=[0.0, 0.08, 0.5])
