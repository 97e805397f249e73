from concurrent.futures import ThreadPoolExecutor

import pytest

from L5_intercept import ProximityClass, SpeedAdvisor, InMemoryParameterSink

from tests.conftest import FailingSink, RaisingSink, BlockingSink


@pytest.mark.parametrize("classification, expected", [
    (ProximityClass.CLEAR, 1.0),
    (ProximityClass.WITHIN_CAUTION_RADIUS, 0.1),
    (ProximityClass.WITHIN_SAFETY_RADIUS, 0.1),
])
def test_target_speed(policy, sink, classification, expected):
    advisor = SpeedAdvisor(sink, policy)
    assert advisor.advise(classification) == pytest.approx(expected)
    assert sink.get("max_vel_x") == pytest.approx(expected)


def test_reduced_speed_follows_policy(policy):
    assert policy.reduced_max_speed == pytest.approx(0.1)


def test_custom_parameter_name(policy, sink):
    SpeedAdvisor(sink, policy, param_name="max_vel_trans").advise(ProximityClass.CLEAR)
    assert sink.params == {"max_vel_trans": 1.0}


def test_rejected_push_is_counted_not_raised(policy):
    sink = FailingSink()
    advisor = SpeedAdvisor(sink, policy)
    advisor.advise(ProximityClass.CLEAR)
    assert sink.calls == [("max_vel_x", 1.0)]
    assert advisor.failed_count == 1
    assert advisor.pushed_count == 0


def test_raising_sink_is_absorbed(policy, caplog):
    advisor = SpeedAdvisor(RaisingSink(), policy)
    advisor.advise(ProximityClass.WITHIN_CAUTION_RADIUS)
    assert advisor.failed_count == 1
    assert "controller unreachable" in caplog.text


def test_executor_push_does_not_block(policy):
    sink = BlockingSink()
    advisor = SpeedAdvisor(sink, policy, executor=ThreadPoolExecutor(max_workers=1))
    advisor.advise(ProximityClass.WITHIN_CAUTION_RADIUS)
    # Push still held by the sink
    assert sink.get("max_vel_x") is None
    sink.release.set()
    advisor.close()
    assert sink.get("max_vel_x") == pytest.approx(0.1)
    assert advisor.pushed_count == 1


def test_executor_preserves_push_order(policy):
    sink = InMemoryParameterSink()
    advisor = SpeedAdvisor(sink, policy, executor=ThreadPoolExecutor(max_workers=1))
    for cls in (ProximityClass.CLEAR, ProximityClass.WITHIN_CAUTION_RADIUS, ProximityClass.CLEAR):
        advisor.advise(cls)
    advisor.close()
    assert [v for _, v in sink.history] == pytest.approx([1.0, 0.1, 1.0])


def test_push_after_close_is_dropped(policy, sink):
    advisor = SpeedAdvisor(sink, policy, executor=ThreadPoolExecutor(max_workers=1))
    advisor.close()
    advisor.advise(ProximityClass.CLEAR)
    assert advisor.failed_count == 1
    assert sink.history == []
