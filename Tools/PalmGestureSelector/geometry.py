"""
Vector geometry and palm plane fitting.

Small numerically stable primitives used by feature extraction: a 3x3
symmetric Jacobi eigensolver, least-squares plane fit, and clamped
angle helpers. Vectors are numpy arrays of shape (3,).
"""

import math
from dataclasses import dataclass
from typing import Iterable

import numpy as np

from .config import (
    GEOMETRY_EPSILON,
    EIGEN_MAX_SWEEPS,
    EIGEN_TOLERANCE,
    PLANE_DEGENERACY_RATIO,
)
from .logger import get_logger

logger = get_logger("Geometry")


def as_vector(value) -> np.ndarray:
    """Copy a 3-sequence into a new float64 vector of shape (3,)."""
    vector = np.array(value, dtype=np.float64).reshape(-1)
    if vector.shape != (3,):
        raise ValueError(f"Expected a 3D vector, got shape {vector.shape}")
    return vector


def dot(a: np.ndarray, b: np.ndarray) -> float:
    return float(np.dot(a, b))


def cross(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    return np.cross(a, b)


def length(v: np.ndarray) -> float:
    return float(np.linalg.norm(v))


def normalize_or_zero(v: np.ndarray, epsilon: float = GEOMETRY_EPSILON) -> np.ndarray:
    """Unit vector along v, or the zero vector if v is shorter than epsilon."""
    norm = np.linalg.norm(v)
    if norm < epsilon:
        return np.zeros(3)
    return v / norm


def angle_between(a: np.ndarray, b: np.ndarray) -> float:
    """
    Angle in radians between two unit vectors.

    The dot product is clamped to [-1, 1] before acos, since rounding can
    push the dot of two unit vectors just outside that range.
    """
    return float(np.arccos(np.clip(np.dot(a, b), -1.0, 1.0)))


def scale_and_clamp(value: float, lower: float, upper: float) -> float:
    """
    Linearly remap value from [lower, upper] onto [0, 1], clamped at both ends.

    Args:
        value: Raw reading.
        lower: Reading that maps to 0.
        upper: Reading that maps to 1. Must be greater than lower.

    Returns:
        Remapped value in [0, 1].
    """
    if not upper > lower:
        raise ValueError(f"upper ({upper}) must be greater than lower ({lower})")
    return min(max((value - lower) / (upper - lower), 0.0), 1.0)


def within_cone(
    apex: np.ndarray,
    direction: np.ndarray,
    cone_angle: float,
    target: np.ndarray
) -> bool:
    """
    Check whether a target lies inside a selection cone.

    Args:
        apex: Cone apex (selection center).
        direction: Cone axis; need not be unit length.
        cone_angle: Half-angle in radians.
        target: World-space point to test.

    Returns:
        True if the angle between the axis and apex->target is below cone_angle.
        Zero-length axes or targets at the apex are never inside.
    """
    axis = normalize_or_zero(as_vector(direction))
    to_target = normalize_or_zero(as_vector(target) - as_vector(apex))
    if not axis.any() or not to_target.any():
        return False
    return angle_between(axis, to_target) < cone_angle


def symmetric_eigen(
    matrix: np.ndarray,
    max_sweeps: int = EIGEN_MAX_SWEEPS,
    tolerance: float = EIGEN_TOLERANCE
) -> tuple[np.ndarray, np.ndarray]:
    """
    Eigen-decompose a real symmetric 3x3 matrix with cyclic Jacobi rotations.

    Each rotation zeroes one off-diagonal pair; sweeps repeat until the
    off-diagonal norm is negligible relative to the matrix norm. The
    iteration is deterministic and works on a fixed 3x3 buffer.

    Args:
        matrix: Symmetric 3x3 matrix.
        max_sweeps: Upper bound on full (0,1), (0,2), (1,2) sweeps.
        tolerance: Relative off-diagonal norm at which to stop.

    Returns:
        (eigenvalues, eigenvectors): eigenvalues in ascending order and a
        3x3 matrix whose columns are the matching unit eigenvectors.
    """
    a = np.array(matrix, dtype=np.float64)
    if a.shape != (3, 3):
        raise ValueError(f"Expected a 3x3 matrix, got shape {a.shape}")
    a = 0.5 * (a + a.T)
    v = np.eye(3)

    scale = np.linalg.norm(a)
    for _ in range(max_sweeps):
        off_diagonal = math.sqrt(a[0, 1] ** 2 + a[0, 2] ** 2 + a[1, 2] ** 2)
        if off_diagonal <= tolerance * scale:
            break

        for p, q in ((0, 1), (0, 2), (1, 2)):
            if a[p, q] == 0.0:
                continue
            theta = (a[q, q] - a[p, p]) / (2.0 * a[p, q])
            t = math.copysign(1.0, theta) / (abs(theta) + math.sqrt(theta * theta + 1.0))
            c = 1.0 / math.sqrt(t * t + 1.0)
            s = t * c

            rotation = np.eye(3)
            rotation[p, p] = c
            rotation[q, q] = c
            rotation[p, q] = s
            rotation[q, p] = -s

            a = rotation.T @ a @ rotation
            v = v @ rotation
    else:
        logger.debug(f"Jacobi did not converge in {max_sweeps} sweeps")

    eigenvalues = np.diag(a).copy()
    order = np.argsort(eigenvalues, kind="stable")
    return eigenvalues[order], v[:, order]


@dataclass
class PalmPlane:
    """
    Least-squares plane through a set of points.

    Attributes:
        centroid: Mean of the input points.
        normal: Unit eigenvector of least variance, or the zero vector
                when the points do not span a plane.
        eigenvalues: Covariance eigenvalues, ascending.
        eigenvectors: Matching eigenvectors as columns; the last column is
                      the axis of largest spread.
        radius: Largest distance of any input point from the centroid.
    """
    centroid: np.ndarray
    normal: np.ndarray
    eigenvalues: np.ndarray
    eigenvectors: np.ndarray
    radius: float

    @property
    def is_degenerate(self) -> bool:
        """True if the points are coincident or collinear."""
        return length(self.normal) < GEOMETRY_EPSILON

    @property
    def major_axis(self) -> np.ndarray:
        """Axis of largest spread within the plane."""
        return self.eigenvectors[:, 2].copy()


def fit_plane(points: Iterable) -> PalmPlane:
    """
    Fit a plane through 3D points by principal component analysis.

    Builds the covariance of the centered points (sum of outer products
    divided by point count) and takes the eigenvector of the smallest
    eigenvalue as the normal. The sign of the normal is arbitrary.

    Args:
        points: Iterable of 3D points (at least one).

    Returns:
        PalmPlane. When the points are coincident or collinear the normal
        is the zero vector; callers detect this with is_degenerate.
    """
    pts = np.asarray([as_vector(p) for p in points])
    if len(pts) == 0:
        raise ValueError("fit_plane requires at least one point")

    centroid = pts.mean(axis=0)
    centered = pts - centroid
    radius = float(np.max(np.linalg.norm(centered, axis=1)))

    covariance = centered.T @ centered / len(pts)
    eigenvalues, eigenvectors = symmetric_eigen(covariance)

    largest = eigenvalues[2]
    if largest <= 0.0 or eigenvalues[1] <= PLANE_DEGENERACY_RATIO * largest:
        normal = np.zeros(3)
    else:
        normal = eigenvectors[:, 0].copy()

    return PalmPlane(
        centroid=centroid,
        normal=normal,
        eigenvalues=eigenvalues,
        eigenvectors=eigenvectors,
        radius=radius
    )
