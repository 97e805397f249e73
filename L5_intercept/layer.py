# =============================================================================
# L5 Intercept - Plan Override Engine
# =============================================================================
# Sits between the global planner and the trajectory controller:
# - Caches the base plan and the latest pedestrian batch
# - Runs the NORMAL/RETREATING hysteresis on every planning request
# - Advises the controller max speed from the nearest pedestrian
#
# Base plan, safety state, retreat goal, policy and obstacle snapshot share
# one lock. The speed push happens after the lock is released.
# =============================================================================

import dataclasses
import threading
from concurrent.futures import Executor
from typing import Iterable, List, Optional, Sequence

import numpy as np

from .base import BaseInterceptor
from .types import (
    Waypoint,
    PlanResult,
    OutcomeCode,
    SafetyState,
    ProximityClass,
    ProximityReport,
    SpeedPolicy,
    ConfigurationError
)
from .proximity import ProximityEvaluator, points_from_batch, EMPTY_POINTS
from .retreat import RetreatGoalGenerator
from .speed import ParameterSink, SpeedAdvisor
from .logging_config import get_logger

from .config import DEFAULT_PLAN_COST, MAX_SPEED_PARAM

logger = get_logger("layer")


class PlanOverrideEngine(BaseInterceptor):
    """
    Reactive plan interceptor.

    While NORMAL the stored base plan is returned untouched unless a
    pedestrian is within the safety radius; then a single retreat waypoint
    is computed from the current pose and returned until the robot comes
    within the goal tolerance of it.

    An engine built without a policy or sink is disarmed: it passes the
    base plan through and never pushes a speed.
    """

    def __init__(self,
                 policy: Optional[SpeedPolicy] = None,
                 sink: Optional[ParameterSink] = None,
                 executor: Optional[Executor] = None,
                 param_name: str = MAX_SPEED_PARAM):
        """
        Initialize the engine.

        Args:
            policy: Speed policy; validated here
            sink: Controller parameter interface for the speed advisory
            executor: Runs speed pushes off the planning thread (optional)
            param_name: Controller parameter receiving the advised speed

        Raises:
            ConfigurationError: If the policy is inconsistent
        """
        self._lock = threading.Lock()

        self._base_plan: List[Waypoint] = []
        self._points: np.ndarray = EMPTY_POINTS
        self._state = SafetyState.NORMAL
        self._retreat: Optional[Waypoint] = None

        self._policy: Optional[SpeedPolicy] = None
        self._evaluator: Optional[ProximityEvaluator] = None
        self._generator: Optional[RetreatGoalGenerator] = None
        self._advisor: Optional[SpeedAdvisor] = None

        self.armed = policy is not None and sink is not None
        if self.armed:
            self._advisor = SpeedAdvisor(sink, policy.validate(), param_name, executor)
            self._apply_policy(policy)
        else:
            logger.warning("Interceptor disarmed: base plan passes through")

        # Counters
        self.request_count = 0
        self.retreat_count = 0
        self.feed_count = 0

    # =========================================================================
    # Introspection
    # =========================================================================

    @property
    def state(self) -> SafetyState:
        with self._lock:
            return self._state

    @property
    def retreat_waypoint(self) -> Optional[Waypoint]:
        with self._lock:
            return self._retreat

    @property
    def policy(self) -> Optional[SpeedPolicy]:
        with self._lock:
            return self._policy

    @property
    def base_plan(self) -> List[Waypoint]:
        with self._lock:
            return list(self._base_plan)

    # =========================================================================
    # Host Interface
    # =========================================================================

    def make_plan(self, start: Waypoint, goal: Waypoint) -> PlanResult:
        """
        Answer a planning request.

        Args:
            start: Current robot pose and frame
            goal: Planner goal (unused by the retreat logic)

        Returns:
            PlanResult with the base plan or the single retreat waypoint;
            the outcome is always SUCCESS
        """
        with self._lock:
            self.request_count += 1
            if not self.armed:
                return PlanResult(OutcomeCode.SUCCESS, list(self._base_plan),
                                  DEFAULT_PLAN_COST, "Interceptor disarmed")

            report = self._evaluator.evaluate(start.pose, self._points)
            result = self._step(start, report)
            advisor = self._advisor
            speed = advisor.target_speed(report.classification)

        advisor.push(speed)
        return result

    def set_plan(self, plan: Sequence[Waypoint]) -> bool:
        """Replace the base plan wholesale; the safety state is untouched."""
        plan = list(plan)
        with self._lock:
            self._base_plan = plan
        logger.debug(f"Base plan replaced ({len(plan)} waypoints)")
        return True

    def update_obstacles(self, batch: Iterable):
        """
        Obstacle feed callback: replace the snapshot with ``batch``.

        Args:
            batch: Iterable of ObstaclePoint (or items with x/y/z or location)
        """
        points = points_from_batch(batch)
        with self._lock:
            self._points = points
            self.feed_count += 1

    def reconfigure(self, **changes) -> SpeedPolicy:
        """
        Apply a reconfiguration event.

        Args:
            **changes: Any subset of SpeedPolicy fields

        Returns:
            The policy now in effect

        Raises:
            ConfigurationError: On unknown fields, invalid values or a
                disarmed engine; the previous policy stays active
        """
        with self._lock:
            if not self.armed:
                raise ConfigurationError("Cannot reconfigure a disarmed interceptor")
            try:
                policy = dataclasses.replace(self._policy, **changes)
            except TypeError as e:
                raise ConfigurationError(f"Unknown policy field: {e}") from e
            self._apply_policy(policy.validate())
        logger.info(f"Reconfigured: {changes}")
        return policy

    def reset(self):
        """Return to NORMAL and drop plan, snapshot and retreat goal."""
        with self._lock:
            self._base_plan = []
            self._points = EMPTY_POINTS
            self._state = SafetyState.NORMAL
            self._retreat = None

    def close(self):
        """Drain pending speed pushes."""
        if self._advisor is not None:
            self._advisor.close()

    # =========================================================================
    # State Machine
    # =========================================================================

    def _step(self, start: Waypoint, report: ProximityReport) -> PlanResult:
        if self._state is SafetyState.RETREATING:
            dist = float(np.linalg.norm(start.position - self._retreat.position))
            if dist > self._policy.goal_tolerance:
                return PlanResult(OutcomeCode.SUCCESS, [self._retreat], DEFAULT_PLAN_COST,
                                  f"Retreating, {dist:.2f}m to retreat goal")
            logger.info(f"Reached retreat goal (d={dist:.2f}m), resuming base plan")
            self._state = SafetyState.NORMAL
            self._retreat = None

        if report.classification is ProximityClass.WITHIN_SAFETY_RADIUS:
            self._retreat = self._generator.generate(start.pose, start.frame_id)
            self._state = SafetyState.RETREATING
            self.retreat_count += 1
            goal = self._retreat.pose
            logger.info(f"Pedestrian at {report.nearest_distance:.2f}m, "
                        f"retreating to ({goal.x:.2f}, {goal.y:.2f})")
            return PlanResult(OutcomeCode.SUCCESS, [self._retreat], DEFAULT_PLAN_COST,
                              f"Pedestrian within safety radius "
                              f"(d={report.nearest_distance:.2f}m)")

        return PlanResult(OutcomeCode.SUCCESS, list(self._base_plan), DEFAULT_PLAN_COST)

    def _apply_policy(self, policy: SpeedPolicy):
        self._policy = policy
        self._evaluator = ProximityEvaluator.from_policy(policy)
        self._generator = RetreatGoalGenerator.from_policy(policy)
        self._advisor.policy = policy

    # =========================================================================
    # Debug Export
    # =========================================================================

    def get_statistics(self) -> dict:
        """Returns engine counters and current policy."""
        with self._lock:
            stats = {
                "armed": self.armed,
                "state": self._state.value,
                "requests": self.request_count,
                "retreats": self.retreat_count,
                "feed_updates": self.feed_count,
                "obstacle_count": len(self._points),
                "base_plan_length": len(self._base_plan),
            }
            if self._policy is not None:
                stats["policy"] = dataclasses.asdict(self._policy)
                stats["reduced_max_speed"] = self._policy.reduced_max_speed
        if self._advisor is not None:
            stats["pushes_ok"] = self._advisor.pushed_count
            stats["pushes_failed"] = self._advisor.failed_count
        return stats

    def export_state(self) -> dict:
        """Export complete state for analysis/debug."""
        with self._lock:
            retreat = self._retreat
            return {
                "state": self._state.value,
                "retreat_goal": None if retreat is None else {
                    "pos": retreat.position.tolist(),
                    "yaw": retreat.pose.yaw,
                    "frame_id": retreat.frame_id
                },
                "base_plan": [wp.position.tolist() for wp in self._base_plan],
                "obstacles": self._points.tolist()
            }
