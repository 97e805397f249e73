# =============================================================================
# L5 Intercept - Types and Data Structures
# =============================================================================
# Poses, waypoints, obstacle points, safety enums, the speed policy record and
# the planning result handed back to the host framework.
# =============================================================================

import numbers
import numpy as np
from dataclasses import dataclass, field, fields
from typing import List, Tuple
from enum import Enum, IntEnum

from .transforms import yaw_from_quaternion, quaternion_from_yaw


# =============================================================================
# Errors
# =============================================================================

class InterceptError(Exception):
    """Base class for interceptor errors."""


class ConfigurationError(InterceptError):
    """A required parameter is missing or holds an unusable value."""


# =============================================================================
# Enumerations
# =============================================================================

class SafetyState(Enum):
    """Hysteresis state of the plan override engine."""
    NORMAL = "NORMAL"               # Following the base plan
    RETREATING = "RETREATING"       # Steering to the stored retreat goal


class ProximityClass(Enum):
    """Classification of the nearest obstacle for one request."""
    CLEAR = "CLEAR"
    WITHIN_CAUTION_RADIUS = "WITHIN_CAUTION_RADIUS"
    WITHIN_SAFETY_RADIUS = "WITHIN_SAFETY_RADIUS"


class OutcomeCode(IntEnum):
    """Result codes of the host framework's planning action."""
    SUCCESS = 0
    FAILURE = 50
    CANCELED = 51
    INVALID_START = 52
    INVALID_GOAL = 53
    BLOCKED_START = 54
    BLOCKED_GOAL = 55
    NO_PATH_FOUND = 56
    PAT_EXCEEDED = 57
    EMPTY_PATH = 58
    TF_ERROR = 59
    NOT_INITIALIZED = 60
    INVALID_PLUGIN = 61
    INTERNAL_ERROR = 62


# =============================================================================
# Geometry
# =============================================================================

@dataclass(frozen=True)
class Pose:
    """Robot or goal pose: position plus heading."""
    x: float
    y: float
    z: float = 0.0
    yaw: float = 0.0        # Heading (radians)

    @classmethod
    def from_quaternion(cls, x: float, y: float, z: float,
                        qx: float, qy: float, qz: float, qw: float) -> "Pose":
        """Builds a pose from a position and an orientation quaternion."""
        return cls(x, y, z, yaw_from_quaternion(qx, qy, qz, qw))

    @property
    def position(self) -> np.ndarray:
        return np.array([self.x, self.y, self.z], dtype=float)


@dataclass(frozen=True)
class Waypoint:
    """A pose expressed in a named coordinate frame."""
    pose: Pose
    frame_id: str = "map"

    @property
    def position(self) -> np.ndarray:
        return self.pose.position

    @property
    def orientation(self) -> Tuple[float, float, float, float]:
        """(qx, qy, qz, qw) for the waypoint heading."""
        return quaternion_from_yaw(self.pose.yaw)


@dataclass(frozen=True)
class ObstaclePoint:
    """Labeled obstacle location from the pedestrian feed (id is unused)."""
    id: int
    x: float
    y: float
    z: float = 0.0


# =============================================================================
# Evaluation Results
# =============================================================================

@dataclass
class ProximityReport:
    """Outcome of one proximity evaluation."""
    classification: ProximityClass
    nearest_distance: float         # inf when no obstacles
    distances: np.ndarray           # Per-obstacle distances (meters)


@dataclass
class PlanResult:
    """Answer to a planning request."""
    outcome: OutcomeCode
    plan: List[Waypoint] = field(default_factory=list)
    cost: float = 0.0
    message: str = ""


# =============================================================================
# Speed Policy
# =============================================================================

@dataclass(frozen=True)
class SpeedPolicy:
    """
    Tunables of the interceptor.

    The reduced speed is derived on access so it always tracks the current
    nominal speed and cautious factor.
    """
    nominal_max_speed: float        # Controller max forward speed (m/s)
    cautious_factor: float          # Fraction of nominal used near pedestrians
    caution_radius: float           # Speed reduction radius (m)
    safety_radius: float            # Retreat trigger radius (m)
    goal_tolerance: float           # Retreat goal reached radius (m)
    retreat_distance: float         # Back-off distance (m)

    @property
    def reduced_max_speed(self) -> float:
        return self.cautious_factor * self.nominal_max_speed

    def validate(self) -> "SpeedPolicy":
        """
        Checks the policy for consistency.

        Returns:
            self, to allow chaining

        Raises:
            ConfigurationError: On the first inconsistent field
        """
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, bool) or not isinstance(value, numbers.Real):
                raise ConfigurationError(f"{f.name} must be a number, got {value!r}")
        if not self.nominal_max_speed > 0:
            raise ConfigurationError(
                f"nominal_max_speed must be positive, got {self.nominal_max_speed}")
        if not 0 < self.cautious_factor <= 1:
            raise ConfigurationError(
                f"cautious_factor must be in (0, 1], got {self.cautious_factor}")
        for name in ("caution_radius", "safety_radius",
                     "goal_tolerance", "retreat_distance"):
            value = getattr(self, name)
            if not value > 0:
                raise ConfigurationError(f"{name} must be positive, got {value}")
        if self.safety_radius > self.caution_radius:
            raise ConfigurationError(
                f"safety_radius ({self.safety_radius}) exceeds "
                f"caution_radius ({self.caution_radius})")
        return self
