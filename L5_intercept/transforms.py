# =============================================================================
# L5 Intercept - Orientation Transforms
# =============================================================================
# Conversions between planar headings and orientation quaternions.
# Quaternions use the (x, y, z, w) order of geometry_msgs.
# =============================================================================

import numpy as np
from typing import Tuple
from scipy.spatial.transform import Rotation


def yaw_from_quaternion(qx: float, qy: float, qz: float, qw: float) -> float:
    """
    Extracts the heading (rotation about Z) from a quaternion.

    Args:
        qx, qy, qz, qw: Orientation quaternion

    Returns:
        Yaw in radians, in [-pi, pi]; 0 for an all-zero (unset) quaternion
    """
    if not np.any([qx, qy, qz, qw]):
        return 0.0
    yaw, _, _ = Rotation.from_quat([qx, qy, qz, qw]).as_euler('zyx')
    return float(yaw)


def quaternion_from_yaw(yaw: float) -> Tuple[float, float, float, float]:
    """
    Builds a pure-yaw quaternion.

    Args:
        yaw: Heading in radians

    Returns:
        (qx, qy, qz, qw)
    """
    qx, qy, qz, qw = Rotation.from_euler('z', yaw).as_quat()
    return float(qx), float(qy), float(qz), float(qw)


def heading_vector(yaw: float) -> np.ndarray:
    """Unit vector in the XY plane pointing along the heading."""
    return np.array([np.cos(yaw), np.sin(yaw), 0.0])
