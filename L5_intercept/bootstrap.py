# =============================================================================
# L5 Intercept - Bootstrap
# =============================================================================
# Builds an engine from the host's parameter source:
# 1. Resolve the active controller keyword to its parameter namespace
# 2. Read the controller's nominal max speed
# 3. Create the parameter sink for that namespace
#
# Any configuration error leaves the engine disarmed instead of raising.
# =============================================================================

from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, Optional

from .types import SpeedPolicy, ConfigurationError
from .speed import ParameterSink
from .layer import PlanOverrideEngine
from .logging_config import get_logger

from .config import (
    CAUTION_RADIUS,
    SAFETY_RADIUS,
    RETREAT_DISTANCE,
    GOAL_TOLERANCE,
    CAUTIOUS_FACTOR,
    MAX_SPEED_PARAM,
    LOCAL_PLANNER_PARAM,
    CONTROLLER_PARENT,
    CONTROLLER_NAMES,
    PUSH_WORKERS
)

logger = get_logger("bootstrap")


class ParameterSource(ABC):
    """Read access to the host's parameter store."""

    @abstractmethod
    def get(self, name: str) -> Any:
        """
        Read a parameter.

        Raises:
            KeyError: If the parameter does not exist
        """
        pass


class DictParameterSource(ParameterSource):
    """Parameter source backed by a flat dict of fully-qualified names."""

    def __init__(self, params: Optional[Dict[str, Any]] = None):
        self.params = dict(params or {})

    def get(self, name: str) -> Any:
        return self.params[name]


def _join(*parts: str) -> str:
    return "/".join(p.strip("/") for p in parts if p.strip("/"))


def qualify(node_namespace: str, *parts: str) -> str:
    """Absolute parameter name below ``node_namespace``."""
    return "/" + _join(node_namespace, *parts)


def resolve_controller_namespace(source: ParameterSource, node_namespace: str = "") -> str:
    """
    Namespace of the active trajectory controller.

    Args:
        source: Parameter source
        node_namespace: Namespace of the navigation node

    Returns:
        e.g. ``/robot1/move_base_flex/TebLocalPlannerROS``

    Raises:
        ConfigurationError: Keyword missing or not a known controller
    """
    name = qualify(node_namespace, LOCAL_PLANNER_PARAM)
    try:
        keyword = source.get(name)
    except KeyError:
        raise ConfigurationError(f"Failed to get parameter {name}") from None
    controller = CONTROLLER_NAMES.get(str(keyword).strip().lower())
    if controller is None:
        raise ConfigurationError(
            f"Unknown local planner '{keyword}' (expected one of "
            f"{', '.join(sorted(CONTROLLER_NAMES))})")
    return qualify(node_namespace, CONTROLLER_PARENT, controller)


def read_nominal_speed(source: ParameterSource, namespace: str,
                       param_name: str = MAX_SPEED_PARAM) -> float:
    """
    Current max speed of the controller.

    Raises:
        ConfigurationError: Missing, non-numeric or non-positive value
    """
    name = qualify(namespace, param_name)
    try:
        value = float(source.get(name))
    except KeyError:
        raise ConfigurationError(f"Failed to get parameter {name}") from None
    except (TypeError, ValueError):
        raise ConfigurationError(f"Parameter {name} is not numeric") from None
    if not value > 0:
        raise ConfigurationError(f"Parameter {name} must be positive, got {value}")
    return value


def build_engine(source: ParameterSource,
                 sink_factory: Callable[[str], ParameterSink],
                 node_namespace: str = "",
                 caution_radius: float = CAUTION_RADIUS,
                 safety_radius: float = SAFETY_RADIUS,
                 retreat_distance: float = RETREAT_DISTANCE,
                 goal_tolerance: float = GOAL_TOLERANCE,
                 cautious_factor: float = CAUTIOUS_FACTOR,
                 async_push: bool = True) -> PlanOverrideEngine:
    """
    Create an engine for the active controller.

    Args:
        source: Host parameter source
        sink_factory: Builds the parameter sink for a controller namespace
        node_namespace: Namespace of the navigation node
        caution_radius, safety_radius, retreat_distance, goal_tolerance,
        cautious_factor: Policy tunables
        async_push: Push speeds from a worker thread

    Returns:
        Armed engine, or a disarmed pass-through engine if the
        configuration is unusable
    """
    try:
        namespace = resolve_controller_namespace(source, node_namespace)
        nominal = read_nominal_speed(source, namespace)
        policy = SpeedPolicy(
            nominal_max_speed=nominal,
            cautious_factor=cautious_factor,
            caution_radius=caution_radius,
            safety_radius=safety_radius,
            goal_tolerance=goal_tolerance,
            retreat_distance=retreat_distance
        ).validate()
    except ConfigurationError as e:
        logger.error(f"Interceptor not armed: {e}")
        return PlanOverrideEngine()

    executor = ThreadPoolExecutor(max_workers=PUSH_WORKERS,
                                  thread_name_prefix="speed-push") if async_push else None
    engine = PlanOverrideEngine(policy, sink_factory(namespace), executor)
    logger.info(f"Interceptor armed for {namespace} "
                f"(nominal {policy.nominal_max_speed:.2f} m/s, "
                f"reduced {policy.reduced_max_speed:.2f} m/s)")
    return engine
