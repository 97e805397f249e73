# =============================================================================
# SIMULATION - Interceptor Scenario Runner
# =============================================================================
# Drives the L5 plan interceptor with:
# - a robot following a straight base plan
# - scripted pedestrians published through the obstacle feed
# - the controller max speed taken from what the interceptor pushed
# =============================================================================

import numpy as np
import os
import argparse
import json
import logging
import matplotlib.pyplot as plt
from matplotlib.patches import Circle
import pandas as pd
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from L5_intercept import (
    Pose,
    Waypoint,
    ObstaclePoint,
    SafetyState,
    ProximityEvaluator,
    InMemoryParameterSink,
    DictParameterSource,
    PlanOverrideEngine,
    build_engine
)
from L5_intercept.config import MAX_SPEED_PARAM, OBSTACLE_FEED_TOPIC
from L5_intercept.logging_config import setup_logging, get_logger

logger = get_logger("simulation")

FRAME_ID = "map"
CONTROLLER_KEYWORD = "teb"
NOMINAL_SPEED = 1.0             # Controller max_vel_x before any advisory (m/s)
PLAN_LENGTH = 30.0              # Straight base plan length (meters)
PLAN_SPACING = 1.0              # Distance between base plan waypoints (meters)
LOOKAHEAD = 0.5                 # Skip base waypoints closer than this (meters)


# =============================================================================
# Scenarios
# =============================================================================

@dataclass
class Pedestrian:
    """Pedestrian walking a polyline at constant speed."""
    id: int
    path: List[Tuple[float, float]]
    speed: float

    def __post_init__(self):
        self.pos = np.array(self.path[0], dtype=float)
        self.leg = 1

    def update(self, dt: float):
        step = self.speed * dt
        while step > 0 and self.leg < len(self.path):
            target = np.array(self.path[self.leg], dtype=float)
            delta = target - self.pos
            dist = np.linalg.norm(delta)
            if dist <= step:
                self.pos = target
                self.leg += 1
                step -= dist
            else:
                self.pos = self.pos + delta / dist * step
                step = 0

    def as_point(self) -> ObstaclePoint:
        return ObstaclePoint(self.id, float(self.pos[0]), float(self.pos[1]), 0.0)


class ScenarioPresets:
    """Pedestrian scripts for the straight-line base plan along +X."""

    @staticmethod
    def clear() -> List[Pedestrian]:
        return []

    @staticmethod
    def head_on() -> List[Pedestrian]:
        # Walks down the plan toward the robot, then steps aside
        return [Pedestrian(0, [(12.0, 0.0), (1.0, 0.0), (1.0, 8.0)], 0.8)]

    @staticmethod
    def crossing() -> List[Pedestrian]:
        # Crosses the plan inside the caution radius but clear of the safety radius
        return [Pedestrian(0, [(8.0, -6.0), (8.0, 6.0)], 1.0)]

    @classmethod
    def get(cls, name: str) -> List[Pedestrian]:
        presets = {
            'clear': cls.clear,
            'head_on': cls.head_on,
            'crossing': cls.crossing,
        }
        if name not in presets:
            raise ValueError(f"Unknown scenario: {name}")
        return presets[name]()


def straight_plan(length: float = PLAN_LENGTH,
                  spacing: float = PLAN_SPACING) -> List[Waypoint]:
    """Base plan along +X starting at the origin."""
    xs = np.arange(spacing, length + spacing / 2, spacing)
    return [Waypoint(Pose(float(x), 0.0, 0.0, 0.0), FRAME_ID) for x in xs]


# =============================================================================
# Simulation Controller
# =============================================================================

class SimulationController:
    """
    Coordinates pedestrians, the interceptor and a point robot.
    """

    def __init__(self, scenario: str = 'head_on', dt: float = 0.1, steps: int = 600,
                 engine: Optional[PlanOverrideEngine] = None):
        self.scenario = scenario
        self.dt = dt
        self.steps = steps

        self.sink = InMemoryParameterSink()
        if engine is None:
            source = DictParameterSource({
                "/local_planner": CONTROLLER_KEYWORD,
                "/move_base_flex/TebLocalPlannerROS/max_vel_x": NOMINAL_SPEED,
            })
            engine = build_engine(source, self._sink_for, async_push=False)
        self.engine = engine

        self.base_plan = straight_plan()
        self.goal = self.base_plan[-1]
        self.engine.set_plan(self.base_plan)

        self.pedestrians = ScenarioPresets.get(scenario)
        self.robot = Pose(0.0, 0.0, 0.0, 0.0)
        self.log: List[Dict] = []
        self.frame = 0

        logger.info(f"Scenario {scenario} initialized "
                    f"({len(self.pedestrians)} pedestrians, {steps} steps)")

    def _sink_for(self, namespace: str) -> InMemoryParameterSink:
        self.sink.namespace = namespace
        return self.sink

    def current_speed(self) -> float:
        return self.sink.get(MAX_SPEED_PARAM, NOMINAL_SPEED)

    def step(self) -> Dict:
        """Executes one simulation step and returns its log row."""
        for ped in self.pedestrians:
            ped.update(self.dt)
        self.engine.update_obstacles([p.as_point() for p in self.pedestrians])

        start = Waypoint(self.robot, FRAME_ID)
        result = self.engine.make_plan(start, self.goal)
        state = self.engine.state
        speed = self.current_speed()

        self.robot = self._drive(result.plan, state, speed)

        points = np.array([p.pos.tolist() + [0.0] for p in self.pedestrians]).reshape(-1, 3)
        report = ProximityEvaluator.from_policy(self.engine.policy).evaluate(start.pose, points) \
            if self.engine.armed else None
        retreat = self.engine.retreat_waypoint

        row = {
            "frame": self.frame,
            "time": self.frame * self.dt,
            "x": self.robot.x,
            "y": self.robot.y,
            "state": state.value,
            "classification": report.classification.value if report else None,
            "nearest_distance": report.nearest_distance if report else np.nan,
            "speed": speed,
            "plan_length": len(result.plan),
            "retreat_x": retreat.pose.x if retreat else np.nan,
            "retreat_y": retreat.pose.y if retreat else np.nan,
            "message": result.message,
        }
        self.log.append(row)
        self.frame += 1
        return row

    def _drive(self, plan: List[Waypoint], state: SafetyState, speed: float) -> Pose:
        """Move the robot one step toward the relevant waypoint."""
        if not plan:
            return self.robot
        pos = self.robot.position
        if state is SafetyState.RETREATING:
            target = plan[0].position
        else:
            ahead = [wp for wp in plan if np.linalg.norm(wp.position - pos) > LOOKAHEAD
                     and wp.pose.x >= self.robot.x]
            target = (ahead[0] if ahead else plan[-1]).position

        delta = target - pos
        dist = np.linalg.norm(delta)
        if dist < 1e-9:
            return self.robot
        new_pos = pos + delta / dist * min(speed * self.dt, dist)
        # Backing up keeps the heading; forward motion faces the target
        yaw = self.robot.yaw if state is SafetyState.RETREATING else float(np.arctan2(delta[1], delta[0]))
        return Pose(float(new_pos[0]), float(new_pos[1]), float(new_pos[2]), yaw)

    def run(self) -> pd.DataFrame:
        for _ in range(self.steps):
            self.step()
        self.engine.close()
        return self.to_dataframe()

    def to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame(self.log)

    def compute_metrics(self) -> dict:
        df = self.to_dataframe()
        stats = self.engine.get_statistics()
        metrics = {
            "scenario": self.scenario,
            "steps": len(df),
            "retreats": stats["retreats"],
            "armed": stats["armed"],
        }
        if not df.empty:
            metrics["time_retreating"] = float((df["state"] == SafetyState.RETREATING.value).sum() * self.dt)
            metrics["time_reduced_speed"] = float((df["speed"] < NOMINAL_SPEED).sum() * self.dt)
            metrics["min_distance"] = float(df["nearest_distance"].min())
            metrics["final_position"] = [float(df["x"].iloc[-1]), float(df["y"].iloc[-1])]
        return metrics

    def save_logs(self, log_dir: str = "log") -> Tuple[str, str]:
        """Saves step log (CSV) and metrics (JSON)."""
        timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
        os.makedirs(log_dir, exist_ok=True)

        csv_file = os.path.join(log_dir, f"intercept_log_{self.scenario}_{timestamp}.csv")
        self.to_dataframe().to_csv(csv_file, index=False, encoding='utf-8')
        logger.info(f"Log saved: {csv_file}")

        json_file = os.path.join(log_dir, f"intercept_metrics_{self.scenario}_{timestamp}.json")
        output = {
            'timestamp': datetime.now().isoformat(),
            'feed_topic': OBSTACLE_FEED_TOPIC,
            'metrics': self.compute_metrics(),
            'engine': self.engine.get_statistics(),
        }
        with open(json_file, 'w', encoding='utf-8') as f:
            json.dump(output, f, indent=2, ensure_ascii=False, default=str)
        logger.info(f"Metrics saved: {json_file}")
        return csv_file, json_file


# =============================================================================
# Visualization
# =============================================================================

def plot(controller: SimulationController, show: bool = True):
    """Robot track, pedestrians and retreat goals; distance and speed over time."""
    df = controller.to_dataframe()
    policy = controller.engine.policy

    fig, (ax_map, ax_time) = plt.subplots(1, 2, figsize=(14, 6))

    ax_map.set_aspect('equal')
    ax_map.grid(True, alpha=0.25, linestyle='--')
    ax_map.set_xlabel('X (m)', fontsize=10, fontweight='bold')
    ax_map.set_ylabel('Y (m)', fontsize=10, fontweight='bold')
    plan = np.array([wp.position for wp in controller.base_plan])
    ax_map.plot(plan[:, 0], plan[:, 1], 'k:', alpha=0.5, label='Base plan')
    ax_map.plot(df["x"], df["y"], 'c-', linewidth=2, label='Robot')
    retreats = df.dropna(subset=["retreat_x"]).drop_duplicates(subset=["retreat_x", "retreat_y"])
    ax_map.plot(retreats["retreat_x"], retreats["retreat_y"], 'r*', markersize=14, label='Retreat goal')
    for ped in controller.pedestrians:
        path = np.array(ped.path)
        ax_map.plot(path[:, 0], path[:, 1], '--', color='orange', alpha=0.6)
        ax_map.add_patch(Circle(ped.pos, 0.3, fc='gold', ec='darkorange', lw=2))
    if policy is not None:
        last = (df["x"].iloc[-1], df["y"].iloc[-1]) if not df.empty else (0.0, 0.0)
        ax_map.add_patch(Circle(last, policy.safety_radius, fill=False, ec='red', ls='--'))
        ax_map.add_patch(Circle(last, policy.caution_radius, fill=False, ec='orange', ls='--'))
    ax_map.legend(loc='upper right', fontsize=8)
    ax_map.set_title(f'Scenario {controller.scenario}', fontsize=11, fontweight='bold')

    ax_time.plot(df["time"], df["nearest_distance"], 'b-', label='Nearest pedestrian (m)')
    ax_time.plot(df["time"], df["speed"], 'g-', label='Advised max speed (m/s)')
    if policy is not None:
        ax_time.axhline(y=policy.safety_radius, color='r', linestyle='--', alpha=0.6)
        ax_time.axhline(y=policy.caution_radius, color='orange', linestyle='--', alpha=0.6)
    retreating = df["state"] == SafetyState.RETREATING.value
    ax_time.fill_between(df["time"], 0, 1, where=retreating, color='red', alpha=0.1,
                         transform=ax_time.get_xaxis_transform(), label='Retreating')
    ax_time.set_xlabel('Time (s)', fontsize=9, fontweight='bold')
    ax_time.grid(True, alpha=0.35)
    ax_time.legend(loc='upper right', fontsize=8)

    fig.tight_layout()
    if show:
        plt.show()
    return fig


# =============================================================================
# Argument Parser
# =============================================================================

def parse_arguments(argv=None):
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog='simulation.py',
        description="Runs the L5 plan interceptor against scripted pedestrian scenarios.",
        epilog="""
EXAMPLES:
  python simulation.py                          # Head-on pedestrian
  python simulation.py --scenario crossing      # Speed reduction only
  python simulation.py --scenario clear --no-plot
""",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument('--scenario', type=str, choices=['clear', 'head_on', 'crossing'],
                        default='head_on', help='Pedestrian scenario (default: head_on)')
    parser.add_argument('--dt', type=float, default=0.1, metavar='SEC',
                        help='Simulation time step in seconds (default: 0.1)')
    parser.add_argument('--steps', type=int, default=600, metavar='N',
                        help='Simulation steps (default: 600)')
    parser.add_argument('--log-dir', type=str, default='log',
                        help='Directory for CSV/JSON output (default: log)')
    parser.add_argument('--no-plot', action='store_true', help='Skip the matplotlib figure')
    parser.add_argument('--verbose', action='store_true', help='Debug logging')
    return parser.parse_args(argv)


# =============================================================================
# Main Entry Point
# =============================================================================

def main(argv=None):
    args = parse_arguments(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.INFO)
    logger.info(f"Scenario '{args.scenario}' replaying {OBSTACLE_FEED_TOPIC} for {args.steps} steps")

    controller = SimulationController(scenario=args.scenario, dt=args.dt, steps=args.steps)
    controller.run()
    controller.save_logs(args.log_dir)

    metrics = controller.compute_metrics()
    logger.info(f"Retreats: {metrics['retreats']} | "
                f"Time retreating: {metrics.get('time_retreating', 0.0):.1f}s | "
                f"Min distance: {metrics.get('min_distance', float('nan')):.2f}m")

    if not args.no_plot:
        plot(controller)


if __name__ == "__main__":
    main()
