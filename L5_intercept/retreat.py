# =============================================================================
# L5 Intercept - Retreat Goal Generator
# =============================================================================
# Single back-off waypoint computed from the pose at the moment a pedestrian
# enters the safety radius.
# =============================================================================

from .types import Pose, Waypoint, SpeedPolicy
from .transforms import heading_vector

from .config import RETREAT_DISTANCE


class RetreatGoalGenerator:
    """Moves the robot position backward along its heading."""

    def __init__(self, retreat_distance: float = RETREAT_DISTANCE):
        self.retreat_distance = retreat_distance

    @classmethod
    def from_policy(cls, policy: SpeedPolicy) -> "RetreatGoalGenerator":
        return cls(policy.retreat_distance)

    def generate(self, pose: Pose, frame_id: str) -> Waypoint:
        """
        Compute the retreat waypoint.

        Args:
            pose: Robot pose at the transition instant
            frame_id: Frame of the robot pose, kept on the waypoint

        Returns:
            Waypoint ``retreat_distance`` behind the robot, same heading
        """
        x, y, z = pose.position - self.retreat_distance * heading_vector(pose.yaw)
        return Waypoint(Pose(float(x), float(y), float(z), pose.yaw), frame_id)
