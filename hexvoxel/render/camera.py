from __future__ import annotations

import numpy as np

from hexvoxel.util.math import exp_smooth, look_at


def _clamp(x: float, lo: float, hi: float) -> float:
    return lo if x < lo else hi if x > hi else x


class OrbitCamera:
    """Camera circling a target point.

    Yaw turns around +Y, pitch tilts toward the pole, distance zooms. Zoom is
    smoothed so key repeats don't jump.
    """

    MIN_DISTANCE = 4.0
    MAX_DISTANCE = 400.0
    MAX_PITCH = 1.45  # radians, just short of straight down

    def __init__(self, target: np.ndarray, distance: float, *, yaw: float = 0.6, pitch: float = 0.6, zoom_smooth_k: float = 6.0) -> None:
        self.target = np.asarray(target, dtype=np.float32)
        self.distance = float(distance)
        self._distance_target = float(distance)
        self.yaw = float(yaw)
        self.pitch = float(pitch)
        self.zoom_smooth_k = float(zoom_smooth_k)

    def update(self, dt: float, *, yaw_rate: float = 0.0, pitch_rate: float = 0.0, zoom: float = 0.0) -> None:
        """Advance by dt seconds.

        Args:
            yaw_rate, pitch_rate: rad/sec
            zoom: >0 moves in, <0 moves out (fraction of distance per second)
        """
        dt = float(dt)
        self.yaw = (self.yaw + yaw_rate * dt) % (2.0 * np.pi)
        self.pitch = _clamp(self.pitch + pitch_rate * dt, -self.MAX_PITCH, self.MAX_PITCH)
        if zoom:
            self._distance_target *= float(np.exp(-zoom * dt))
            self._distance_target = _clamp(self._distance_target, self.MIN_DISTANCE, self.MAX_DISTANCE)
        self.distance = exp_smooth(self.distance, self._distance_target, self.zoom_smooth_k, dt)

    def eye(self) -> np.ndarray:
        cp = float(np.cos(self.pitch))
        offset = np.array(
            [np.sin(self.yaw) * cp, np.sin(self.pitch), np.cos(self.yaw) * cp],
            dtype=np.float32,
        )
        return self.target + offset * np.float32(self.distance)

    def view_matrix(self) -> np.ndarray:
        up = np.array([0.0, 1.0, 0.0], dtype=np.float32)
        return look_at(self.eye(), self.target, up)
