from concurrent.futures import ThreadPoolExecutor

import pytest

from L5_intercept import (
    OutcomeCode,
    SafetyState,
    PlanOverrideEngine,
    ConfigurationError
)

from tests.conftest import at, obstacles, FailingSink, RaisingSink, BlockingSink


# =============================================================================
# Pass-through
# =============================================================================

def test_empty_snapshot_returns_base_plan(engine, base_plan, sink):
    result = engine.make_plan(at(0.0), at(10.0))
    assert result.outcome is OutcomeCode.SUCCESS
    assert result.plan == base_plan
    assert result.cost == 0.0
    assert engine.state is SafetyState.NORMAL
    assert sink.get("max_vel_x") == pytest.approx(1.0)


@pytest.mark.parametrize("distance", [2.0001, 3.0, 9.0, 50.0])
def test_obstacles_outside_safety_radius_keep_base_plan(engine, base_plan, distance):
    engine.update_obstacles(obstacles((distance, 0.0, 0.0)))
    for _ in range(3):
        result = engine.make_plan(at(0.0), at(10.0))
        assert result.plan == base_plan
    assert engine.state is SafetyState.NORMAL
    assert engine.retreat_waypoint is None


def test_returned_plan_is_a_copy(engine, base_plan):
    result = engine.make_plan(at(0.0), at(10.0))
    result.plan.clear()
    assert engine.base_plan == base_plan


def test_cancel_is_not_supported(engine):
    assert engine.cancel() is False


# =============================================================================
# Retreat hysteresis
# =============================================================================

def test_pedestrian_within_safety_radius_triggers_retreat(engine):
    engine.update_obstacles(obstacles((1.0, 0.0, 0.0)))
    result = engine.make_plan(at(0.0), at(10.0))

    assert result.outcome is OutcomeCode.SUCCESS
    assert len(result.plan) == 1
    goal = result.plan[0]
    assert goal.pose.x == pytest.approx(-2.0)
    assert goal.pose.y == pytest.approx(0.0)
    assert goal.pose.z == pytest.approx(0.0)
    assert goal.frame_id == "map"
    assert engine.state is SafetyState.RETREATING
    assert engine.retreat_waypoint == goal


def test_nan_obstacle_does_not_disable_retreat(engine, sink):
    engine.update_obstacles(obstacles((float('nan'), 0.0, 0.0), (0.5, 0.0, 0.0)))
    result = engine.make_plan(at(0.0), at(10.0))
    assert engine.state is SafetyState.RETREATING
    assert len(result.plan) == 1
    assert sink.get("max_vel_x") == pytest.approx(0.1)
    assert engine.get_statistics()["obstacle_count"] == 1


def test_retreat_uses_pose_frame_and_heading(engine):
    engine.update_obstacles(obstacles((5.0, 6.0, 0.0)))
    result = engine.make_plan(at(5.0, 5.0, yaw=-1.2, frame_id="odom"), at(10.0))
    goal = result.plan[0]
    assert goal.frame_id == "odom"
    assert goal.pose.yaw == pytest.approx(-1.2)


def test_retreat_goal_is_held_while_retreating(engine):
    engine.update_obstacles(obstacles((1.0, 0.0, 0.0)))
    first = engine.make_plan(at(0.0), at(10.0)).plan[0]

    # New readings and a moved robot do not change the stored goal
    engine.update_obstacles(obstacles((-1.5, 0.3, 0.0), (0.2, 0.0, 0.0)))
    second = engine.make_plan(at(-0.5, yaw=0.8), at(10.0))
    engine.update_obstacles([])
    third = engine.make_plan(at(-1.0), at(10.0))

    assert second.plan == [first]
    assert third.plan == [first]
    assert engine.state is SafetyState.RETREATING
    assert engine.retreat_count == 1


def test_reaching_retreat_goal_resumes_base_plan(engine, base_plan):
    engine.update_obstacles(obstacles((1.0, 0.0, 0.0)))
    engine.make_plan(at(0.0), at(10.0))

    # 0.15 m from the goal at (-2, 0, 0); pedestrian now 2.85 m away
    result = engine.make_plan(at(-1.85), at(10.0))
    assert engine.state is SafetyState.NORMAL
    assert engine.retreat_waypoint is None
    assert result.plan == base_plan


def test_reaching_retreat_goal_can_rearm_in_same_call(engine):
    engine.update_obstacles(obstacles((1.0, 0.0, 0.0)))
    engine.make_plan(at(0.0), at(10.0))

    engine.update_obstacles(obstacles((-1.0, 0.0, 0.0)))
    result = engine.make_plan(at(-1.9), at(10.0))
    assert engine.state is SafetyState.RETREATING
    assert result.plan[0].pose.x == pytest.approx(-3.9)
    assert engine.retreat_count == 2


def test_outside_goal_tolerance_keeps_retreating(engine):
    engine.update_obstacles(obstacles((1.0, 0.0, 0.0)))
    goal = engine.make_plan(at(0.0), at(10.0)).plan[0]
    engine.update_obstacles([])
    result = engine.make_plan(at(-1.7), at(10.0))
    assert result.plan == [goal]
    assert engine.state is SafetyState.RETREATING


def test_set_plan_does_not_touch_safety_state(engine):
    engine.update_obstacles(obstacles((1.0, 0.0, 0.0)))
    goal = engine.make_plan(at(0.0), at(10.0)).plan[0]

    new_plan = [at(0.0, 1.0), at(0.0, 2.0)]
    assert engine.set_plan(new_plan) is True
    assert engine.state is SafetyState.RETREATING
    assert engine.make_plan(at(-1.0), at(10.0)).plan == [goal]

    engine.update_obstacles([])
    assert engine.make_plan(at(-2.0), at(10.0)).plan == new_plan


def test_reset(engine):
    engine.update_obstacles(obstacles((1.0, 0.0, 0.0)))
    engine.make_plan(at(0.0), at(10.0))
    engine.reset()
    assert engine.state is SafetyState.NORMAL
    assert engine.retreat_waypoint is None
    assert engine.make_plan(at(0.0), at(10.0)).plan == []


# =============================================================================
# Speed advisory
# =============================================================================

def test_caution_radius_reduces_speed_without_retreat(engine, base_plan, sink):
    engine.update_obstacles(obstacles((5.0, 0.0, 0.0)))
    result = engine.make_plan(at(0.0), at(10.0))
    assert engine.state is SafetyState.NORMAL
    assert result.plan == base_plan
    assert sink.get("max_vel_x") == pytest.approx(0.1)


def test_pushed_speed_follows_nearest_pedestrian(engine, sink):
    # Far pedestrian last in the batch must not decide the speed
    engine.update_obstacles(obstacles((5.0, 0.0, 0.0), (40.0, 0.0, 0.0)))
    engine.make_plan(at(0.0), at(10.0))
    assert sink.get("max_vel_x") == pytest.approx(0.1)


def test_one_push_per_request(engine, sink):
    engine.update_obstacles(obstacles((5.0, 0.0, 0.0), (6.0, 0.0, 0.0), (40.0, 0.0, 0.0)))
    engine.make_plan(at(0.0), at(10.0))
    engine.make_plan(at(0.0), at(10.0))
    assert len(sink.history) == 2


def test_speed_returns_to_nominal_when_clear(engine, sink):
    engine.update_obstacles(obstacles((5.0, 0.0, 0.0)))
    engine.make_plan(at(0.0), at(10.0))
    engine.update_obstacles([])
    engine.make_plan(at(0.0), at(10.0))
    assert [v for _, v in sink.history] == pytest.approx([0.1, 1.0])


def test_speed_is_advised_while_retreating(engine, sink):
    engine.update_obstacles(obstacles((1.0, 0.0, 0.0)))
    engine.make_plan(at(0.0), at(10.0))
    engine.update_obstacles([])
    engine.make_plan(at(-1.0), at(10.0))
    assert engine.state is SafetyState.RETREATING
    assert [v for _, v in sink.history] == pytest.approx([0.1, 1.0])


@pytest.mark.parametrize("sink_cls", [FailingSink, RaisingSink])
def test_push_failure_never_reaches_caller(policy, base_plan, sink_cls):
    engine = PlanOverrideEngine(policy, sink_cls())
    engine.set_plan(base_plan)
    engine.update_obstacles(obstacles((1.0, 0.0, 0.0)))
    result = engine.make_plan(at(0.0), at(10.0))
    assert result.outcome is OutcomeCode.SUCCESS
    assert engine.state is SafetyState.RETREATING
    assert engine.get_statistics()["pushes_failed"] == 1


def test_slow_controller_does_not_delay_plan(policy, base_plan):
    sink = BlockingSink()
    engine = PlanOverrideEngine(policy, sink, ThreadPoolExecutor(max_workers=1))
    engine.set_plan(base_plan)
    result = engine.make_plan(at(0.0), at(10.0))
    assert result.plan == base_plan
    assert sink.history == []
    sink.release.set()
    engine.close()
    assert sink.get("max_vel_x") == pytest.approx(1.0)


# =============================================================================
# Reconfiguration
# =============================================================================

def test_reconfigure_safety_radius(engine):
    engine.update_obstacles(obstacles((5.0, 0.0, 0.0)))
    engine.make_plan(at(0.0), at(10.0))
    assert engine.state is SafetyState.NORMAL

    engine.reconfigure(safety_radius=6.0, retreat_distance=1.0)
    result = engine.make_plan(at(0.0), at(10.0))
    assert engine.state is SafetyState.RETREATING
    assert result.plan[0].pose.x == pytest.approx(-1.0)


def test_reconfigure_cautious_factor_updates_reduced_speed(engine, sink):
    policy = engine.reconfigure(cautious_factor=0.5)
    assert policy.reduced_max_speed == pytest.approx(0.5)
    engine.update_obstacles(obstacles((5.0, 0.0, 0.0)))
    engine.make_plan(at(0.0), at(10.0))
    assert sink.get("max_vel_x") == pytest.approx(0.5)


def test_reconfigure_rejects_invalid_values(engine, policy):
    with pytest.raises(ConfigurationError):
        engine.reconfigure(safety_radius=20.0)
    with pytest.raises(ConfigurationError):
        engine.reconfigure(goal_tolerance=0.0)
    with pytest.raises(ConfigurationError):
        engine.reconfigure(walking_speed=1.0)
    with pytest.raises(ConfigurationError):
        engine.reconfigure(safety_radius="1.0")
    with pytest.raises(ConfigurationError):
        engine.reconfigure(cautious_factor=None)
    assert engine.policy == policy


def test_invalid_policy_rejected_at_construction(policy, sink):
    import dataclasses
    with pytest.raises(ConfigurationError):
        PlanOverrideEngine(dataclasses.replace(policy, cautious_factor=1.5), sink)


# =============================================================================
# Disarmed engine
# =============================================================================

def test_disarmed_engine_passes_plan_through(base_plan):
    engine = PlanOverrideEngine()
    engine.set_plan(base_plan)
    engine.update_obstacles(obstacles((0.5, 0.0, 0.0)))
    result = engine.make_plan(at(0.0), at(10.0))
    assert result.outcome is OutcomeCode.SUCCESS
    assert result.plan == base_plan
    assert engine.state is SafetyState.NORMAL
    assert engine.armed is False
    with pytest.raises(ConfigurationError):
        engine.reconfigure(safety_radius=1.0)


def test_statistics_and_export(engine):
    engine.update_obstacles(obstacles((1.0, 0.0, 0.0)))
    engine.make_plan(at(0.0), at(10.0))
    stats = engine.get_statistics()
    assert stats["state"] == "RETREATING"
    assert stats["requests"] == 1
    assert stats["retreats"] == 1
    assert stats["obstacle_count"] == 1
    assert stats["reduced_max_speed"] == pytest.approx(0.1)

    state = engine.export_state()
    assert state["retreat_goal"]["pos"] == pytest.approx([-2.0, 0.0, 0.0])
    assert state["obstacles"] == [[1.0, 0.0, 0.0]]
    assert len(state["base_plan"]) == 10
