from __future__ import annotations

import numpy as np

from ..geom.se3 import inv_T
from .map import Map
from .state import Frame


class NullViewer:
    def set_current_frame(self, frame: Frame) -> None:
        pass

    def update_map(self) -> None:
        pass


class TrajectoryViewer:
    """
    Live matplotlib view of the camera trajectory and the landmark map.
    Redraws on every update_every-th map update.
    """

    def __init__(self, map_: Map, *, update_every: int = 10, max_points: int = 5000):
        import matplotlib.pyplot as plt

        self._plt = plt
        self.map = map_
        self.update_every = max(1, int(update_every))
        self.max_points = max_points
        self.traj_T_w_c: list[np.ndarray] = []
        self._updates = 0

        plt.ion()
        self.fig = plt.figure(figsize=(12, 5))
        self.ax1 = self.fig.add_subplot(121, projection='3d')
        self.ax2 = self.fig.add_subplot(122)

    def set_current_frame(self, frame: Frame) -> None:
        self.traj_T_w_c.append(inv_T(frame.T_c_w))

    def update_map(self) -> None:
        self._updates += 1
        if self._updates % self.update_every == 0:
            self.draw()

    def draw(self) -> None:
        if len(self.traj_T_w_c) < 2:
            return

        positions = np.array([T[:3, 3] for T in self.traj_T_w_c])
        x, y, z = positions[:, 0], positions[:, 1], positions[:, 2]

        pts = np.array([p.pos for p in self.map.all_map_points()][: self.max_points])
        keyframes = np.array([inv_T(f.T_c_w)[:3, 3] for f in self.map.all_keyframes()])

        self.ax1.clear()
        self.ax1.set_xlabel('X (m)')
        self.ax1.set_ylabel('Y (m)')
        self.ax1.set_zlabel('Z (m)')
        self.ax1.set_title(f'3D Trajectory ({len(self.traj_T_w_c)} frames, {len(self.map)} points)')
        if len(pts):
            self.ax1.scatter(pts[:, 0], pts[:, 1], pts[:, 2], c='k', s=1, alpha=0.3)
        self.ax1.plot(x, y, z, 'b-', linewidth=1.5, alpha=0.7)
        if len(keyframes):
            self.ax1.scatter(keyframes[:, 0], keyframes[:, 1], keyframes[:, 2], c='orange', s=20, label='Keyframes')
        self.ax1.scatter(x[-1], y[-1], z[-1], c='r', s=100, marker='o', label='Current')
        self.ax1.legend()

        self.ax2.clear()
        self.ax2.set_xlabel('X (m)')
        self.ax2.set_ylabel('Z (m)')
        self.ax2.set_title(f'Top-Down View (traveled: {np.linalg.norm(positions[-1] - positions[0]):.2f}m)')
        self.ax2.plot(x, z, 'b-', linewidth=1.5, alpha=0.7)
        self.ax2.scatter(x[0], z[0], c='g', s=100, marker='o', label='Start')
        self.ax2.scatter(x[-1], z[-1], c='r', s=100, marker='o', label='Current')
        self.ax2.grid(True)
        self.ax2.legend()
        self.ax2.axis('equal')

        self._plt.pause(0.001)

    def close(self):
        self.draw()
        self._plt.ioff()
        self._plt.show()
