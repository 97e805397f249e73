# =============================================================================
# L5 Intercept - Base Interceptor
# =============================================================================
# Capability interface between the global planner and the trajectory
# controller. Host integration layers adapt it to their plugin ABI.
# =============================================================================

from abc import ABC, abstractmethod
from typing import Sequence

from .types import Waypoint, PlanResult


class BaseInterceptor(ABC):
    """
    Abstract plan interceptor.

    Subclasses decide, per planning request, whether to pass the stored
    base plan through or to override it.
    """

    @abstractmethod
    def make_plan(self, start: Waypoint, goal: Waypoint) -> PlanResult:
        """
        Answer a planning request.

        Args:
            start: Current robot pose
            goal: Requested goal (accepted for interface compatibility)

        Returns:
            PlanResult with outcome code, path, cost and message
        """
        pass

    @abstractmethod
    def set_plan(self, plan: Sequence[Waypoint]) -> bool:
        """
        Replace the base plan handed over by the global planner.

        Returns:
            True if the plan was stored
        """
        pass

    def cancel(self) -> bool:
        """Cancellation is not implemented; always reports False."""
        return False
