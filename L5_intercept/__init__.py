# =============================================================================
# L5 Intercept Package
# =============================================================================
# Reactive safety override between the global planner and the trajectory
# controller.
#
# Responsibilities:
# - Pedestrian proximity evaluation (caution / safety radius)
# - Retreat goal generation with NORMAL/RETREATING hysteresis
# - Max speed advisory pushed to the active controller
#
# Usage:
#   from L5_intercept import build_engine, DictParameterSource, InMemoryParameterSink
#   engine = build_engine(source, InMemoryParameterSink)
#   engine.set_plan(global_plan)
#   engine.update_obstacles(pedestrians)
#   result = engine.make_plan(start, goal)
# =============================================================================

# Types and data structures
from .types import (
    Pose,
    Waypoint,
    ObstaclePoint,
    SafetyState,
    ProximityClass,
    ProximityReport,
    OutcomeCode,
    PlanResult,
    SpeedPolicy,
    InterceptError,
    ConfigurationError
)

# Core components
from .transforms import yaw_from_quaternion, quaternion_from_yaw
from .proximity import ProximityEvaluator, points_from_batch
from .retreat import RetreatGoalGenerator
from .speed import ParameterSink, InMemoryParameterSink, SpeedAdvisor
from .base import BaseInterceptor

# Complete layer
from .layer import PlanOverrideEngine
from .bootstrap import (
    ParameterSource,
    DictParameterSource,
    resolve_controller_namespace,
    read_nominal_speed,
    build_engine
)

__all__ = [
    # Types
    'Pose',
    'Waypoint',
    'ObstaclePoint',
    'SafetyState',
    'ProximityClass',
    'ProximityReport',
    'OutcomeCode',
    'PlanResult',
    'SpeedPolicy',
    'InterceptError',
    'ConfigurationError',

    # Transforms
    'yaw_from_quaternion',
    'quaternion_from_yaw',

    # Components
    'ProximityEvaluator',
    'points_from_batch',
    'RetreatGoalGenerator',
    'ParameterSink',
    'InMemoryParameterSink',
    'SpeedAdvisor',
    'BaseInterceptor',

    # Complete layer
    'PlanOverrideEngine',
    'ParameterSource',
    'DictParameterSource',
    'resolve_controller_namespace',
    'read_nominal_speed',
    'build_engine',
]

__version__ = '1.0.0'
