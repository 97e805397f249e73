# =============================================================================
# L5 Intercept - Proximity Evaluator
# =============================================================================
# Distances from the robot to every obstacle point and the classification of
# the request from the globally nearest one.
# =============================================================================

import numpy as np
from typing import Iterable

from .types import Pose, ProximityClass, ProximityReport, SpeedPolicy
from .logging_config import get_logger

from .config import CAUTION_RADIUS, SAFETY_RADIUS

logger = get_logger("proximity")

EMPTY_POINTS = np.zeros((0, 3))
EMPTY_POINTS.setflags(write=False)


def points_from_batch(batch: Iterable) -> np.ndarray:
    """
    Converts an obstacle feed batch to a read-only (N, 3) array.

    Accepts ObstaclePoint-like items exposing x/y/z, or semantic-layer
    items carrying them in a ``location`` attribute.

    Args:
        batch: Iterable of obstacle items

    Returns:
        Array of obstacle positions in the world frame. Points with a
        non-finite coordinate are dropped.
    """
    coords = []
    for item in batch:
        loc = getattr(item, 'location', item)
        coords.append((loc.x, loc.y, getattr(loc, 'z', 0.0)))
    if not coords:
        return EMPTY_POINTS
    points = np.array(coords, dtype=float)
    finite = np.isfinite(points).all(axis=1)
    if not finite.all():
        logger.debug(f"Dropped {int((~finite).sum())} non-finite obstacle point(s)")
        points = points[finite]
        if len(points) == 0:
            return EMPTY_POINTS
    points.setflags(write=False)
    return points


class ProximityEvaluator:
    """
    Classifies a planning request by the nearest obstacle.

    Distances are the 3-D Euclidean norm of the displacement from the robot
    position to each point.
    """

    def __init__(self,
                 caution_radius: float = CAUTION_RADIUS,
                 safety_radius: float = SAFETY_RADIUS):
        self.caution_radius = caution_radius
        self.safety_radius = safety_radius

    @classmethod
    def from_policy(cls, policy: SpeedPolicy) -> "ProximityEvaluator":
        return cls(policy.caution_radius, policy.safety_radius)

    @staticmethod
    def distances(pose: Pose, points: np.ndarray) -> np.ndarray:
        """Distance from the robot to each row of ``points``."""
        if len(points) == 0:
            return np.zeros(0)
        return np.linalg.norm(points - pose.position, axis=1)

    def classify(self, nearest_distance: float) -> ProximityClass:
        if nearest_distance <= self.safety_radius:
            return ProximityClass.WITHIN_SAFETY_RADIUS
        if nearest_distance <= self.caution_radius:
            return ProximityClass.WITHIN_CAUTION_RADIUS
        return ProximityClass.CLEAR

    def evaluate(self, pose: Pose, points: np.ndarray) -> ProximityReport:
        """
        Evaluate one request.

        Args:
            pose: Current robot pose
            points: (N, 3) obstacle positions, possibly empty

        Returns:
            ProximityReport; CLEAR with infinite distance if no finite obstacles
        """
        dists = self.distances(pose, points)
        valid = dists[np.isfinite(dists)]
        nearest = float(valid.min()) if valid.size else float('inf')
        return ProximityReport(
            classification=self.classify(nearest),
            nearest_distance=nearest,
            distances=dists
        )
