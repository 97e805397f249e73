import threading

import pytest

from L5_intercept import (
    Pose,
    Waypoint,
    ObstaclePoint,
    SpeedPolicy,
    ParameterSink,
    InMemoryParameterSink,
    PlanOverrideEngine
)


def at(x: float, y: float = 0.0, z: float = 0.0, yaw: float = 0.0,
       frame_id: str = "map") -> Waypoint:
    return Waypoint(Pose(x, y, z, yaw), frame_id)


def obstacles(*coords):
    return [ObstaclePoint(i, *c) for i, c in enumerate(coords)]


class FailingSink(ParameterSink):
    def __init__(self):
        self.calls = []

    def set(self, name, value):
        self.calls.append((name, value))
        return False


class RaisingSink(ParameterSink):
    def set(self, name, value):
        raise ConnectionError("controller unreachable")


class BlockingSink(InMemoryParameterSink):
    """Holds every push until ``release`` is set."""

    def __init__(self):
        super().__init__()
        self.release = threading.Event()

    def set(self, name, value):
        self.release.wait(timeout=5.0)
        return super().set(name, value)


@pytest.fixture
def policy():
    return SpeedPolicy(
        nominal_max_speed=1.0,
        cautious_factor=0.1,
        caution_radius=10.0,
        safety_radius=2.0,
        goal_tolerance=0.2,
        retreat_distance=2.0
    )


@pytest.fixture
def sink():
    return InMemoryParameterSink()


@pytest.fixture
def base_plan():
    return [at(float(x)) for x in range(1, 11)]


@pytest.fixture
def engine(policy, sink, base_plan):
    eng = PlanOverrideEngine(policy, sink)
    eng.set_plan(base_plan)
    yield eng
    eng.close()
