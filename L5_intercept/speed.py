# =============================================================================
# L5 Intercept - Speed Advisor
# =============================================================================
# Maps the proximity classification to a max speed and pushes it to the
# downstream controller through a ParameterSink.
#
# Pushes are fire-and-forget: a failed push is logged and dropped, never
# retried, and never reaches the planning caller.
# =============================================================================

import threading
from abc import ABC, abstractmethod
from concurrent.futures import Executor, Future
from typing import Dict, List, Optional, Tuple

from .types import ProximityClass, SpeedPolicy
from .logging_config import get_logger

from .config import MAX_SPEED_PARAM

logger = get_logger("speed")


class ParameterSink(ABC):
    """Tunable-parameter interface of the downstream controller."""

    @abstractmethod
    def set(self, name: str, value: float) -> bool:
        """
        Set a numeric controller parameter.

        Returns:
            True if the controller accepted the update
        """
        pass


class InMemoryParameterSink(ParameterSink):
    """Keeps parameters in a dict; stands in for a live controller."""

    def __init__(self, namespace: str = ""):
        self.namespace = namespace
        self.params: Dict[str, float] = {}
        self.history: List[Tuple[str, float]] = []
        self._lock = threading.Lock()

    def set(self, name: str, value: float) -> bool:
        with self._lock:
            self.params[name] = value
            self.history.append((name, value))
        return True

    def get(self, name: str, default: Optional[float] = None) -> Optional[float]:
        with self._lock:
            return self.params.get(name, default)


class SpeedAdvisor:
    """
    Selects the advised max speed and pushes it.

    With an executor the push runs on the executor's thread and advise()
    returns immediately; without one the push runs inline.
    """

    def __init__(self,
                 sink: ParameterSink,
                 policy: SpeedPolicy,
                 param_name: str = MAX_SPEED_PARAM,
                 executor: Optional[Executor] = None):
        self.sink = sink
        self.policy = policy
        self.param_name = param_name
        self.executor = executor
        self.pushed_count = 0
        self.failed_count = 0
        self._count_lock = threading.Lock()

    def target_speed(self, classification: ProximityClass) -> float:
        if classification is ProximityClass.CLEAR:
            return self.policy.nominal_max_speed
        return self.policy.reduced_max_speed

    def advise(self, classification: ProximityClass) -> float:
        """
        Push the speed matching ``classification``.

        Returns:
            The speed handed to the sink
        """
        speed = self.target_speed(classification)
        self.push(speed)
        return speed

    def push(self, speed: float):
        """Hand ``speed`` to the sink without waiting for the outcome."""
        if self.executor is None:
            self._record(self._push(speed), speed)
        else:
            try:
                future = self.executor.submit(self._push, speed)
            except RuntimeError as e:
                # Executor already shut down
                logger.warning(f"Push of {self.param_name}={speed:.3f} dropped: {e}")
                self._record(False, speed)
                return
            future.add_done_callback(lambda f: self._on_done(f, speed))

    def _push(self, speed: float) -> bool:
        try:
            ok = bool(self.sink.set(self.param_name, speed))
        except Exception as e:
            logger.warning(f"Push of {self.param_name}={speed:.3f} raised "
                           f"{type(e).__name__}: {e}")
            return False
        if not ok:
            logger.warning(f"Controller rejected {self.param_name}={speed:.3f}")
        return ok

    def _on_done(self, future: Future, speed: float):
        if future.cancelled():
            logger.debug(f"Push of {self.param_name}={speed:.3f} cancelled")
            return
        self._record(future.result(), speed)

    def _record(self, ok: bool, speed: float):
        with self._count_lock:
            if ok:
                self.pushed_count += 1
            else:
                self.failed_count += 1
        if ok:
            logger.debug(f"Pushed {self.param_name}={speed:.3f}")

    def close(self):
        """Wait for queued pushes and stop the executor."""
        if self.executor is not None:
            self.executor.shutdown(wait=True)
