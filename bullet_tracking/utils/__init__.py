"""Utility helpers (small, dependency-light).

- motion_logger: CSV logging of per-track position, speed and direction.
"""

from .motion_logger import MotionLogger, default_motion_log_path

__all__ = [
    "MotionLogger",
    "default_motion_log_path",
]
