# =============================================================================
# L5 Intercept - Configuration
# =============================================================================
# Default tunables for the reactive plan interceptor.
# Runtime values are read from the parameter source at bootstrap and can be
# changed later through PlanOverrideEngine.reconfigure().
# =============================================================================

# =============================================================================
# PROXIMITY THRESHOLDS
# =============================================================================
# Pedestrians closer than this reduce the advised speed (meters)
CAUTION_RADIUS = 10.0

# Pedestrians closer than this trigger a retreat goal (meters)
# Must be <= CAUTION_RADIUS
SAFETY_RADIUS = 2.0

# =============================================================================
# RETREAT GOAL
# =============================================================================
# Distance to back off along the current heading (meters)
RETREAT_DISTANCE = 2.0

# Distance to the retreat goal that counts as reached (meters)
GOAL_TOLERANCE = 0.2

# =============================================================================
# SPEED ADVISORY
# =============================================================================
# Reduced max speed = CAUTIOUS_FACTOR * nominal max speed
CAUTIOUS_FACTOR = 0.1

# Name of the controller parameter carrying the max forward speed
MAX_SPEED_PARAM = "max_vel_x"

# =============================================================================
# CONTROLLER RESOLUTION
# =============================================================================
# Parameter (relative to the node namespace) naming the active controller
LOCAL_PLANNER_PARAM = "local_planner"

# Namespace segment under which the controllers live
CONTROLLER_PARENT = "move_base_flex"

# Keyword -> controller implementation
CONTROLLER_NAMES = {
    "teb": "TebLocalPlannerROS",
    "mpc": "MpcLocalPlannerROS",
    "dwa": "DwaLocalPlannerROS",
    "cohan": "HAtebLocalPlannerROS",
}

# =============================================================================
# OBSTACLE FEED
# =============================================================================
# Topic the host adapter subscribes to for pedestrian batches
OBSTACLE_FEED_TOPIC = "/pedsim_agents/semantic/pedestrian"

# =============================================================================
# PLANNING RESULT
# =============================================================================
# Cost reported with every plan (no path cost is computed)
DEFAULT_PLAN_COST = 0.0

# Worker threads for the speed push (1 keeps pushes in order)
PUSH_WORKERS = 1
