import numpy as np
from abc import ABC, abstractmethod
from typing import Dict, Optional

from .types import Joint, JointName, Point, Pose


class PoseSmoother(ABC):
    """Strategy for blending a newly detected pose with the previously smoothed one."""

    @abstractmethod
    def smooth(self, new_pose: Pose, previous_pose: Optional[Pose] = None) -> Pose:
        """
        Smooth a new pose based on the previously smoothed pose.

        Args:
            new_pose: Pose detected in the current frame
            previous_pose: Smoothed pose from the previous frame, if any

        Returns:
            A new Pose with smoothed joint positions
        """


class ExponentialMovingAverageSmoother(PoseSmoother):
    """
    Smooths joint positions with an exponential moving average.

    A lower smoothing factor gives steadier output at the cost of latency;
    a factor of 1.0 disables smoothing. Confidence values are never altered
    and joints missing from the new pose are dropped.
    """

    def __init__(self, smoothing_factor: float = 0.15):
        """
        Initialize the smoother.

        Args:
            smoothing_factor: Weight of the newest observation, clamped to [0, 1]
        """
        self.alpha = float(np.clip(smoothing_factor, 0.0, 1.0))

    def smooth(self, new_pose: Pose, previous_pose: Optional[Pose] = None) -> Pose:
        if previous_pose is None:
            return new_pose

        # Joints seen in both frames get averaged, the rest pass through
        shared = [name for name in new_pose.joints if name in previous_pose.joints]
        smoothed_joints: Dict[JointName, Joint] = dict(new_pose.joints)

        if not shared:
            return Pose(smoothed_joints)

        new_xy = np.array([new_pose.joints[name].position for name in shared], dtype=float)
        prev_xy = np.array([previous_pose.joints[name].position for name in shared], dtype=float)
        blended = self.alpha * new_xy + (1.0 - self.alpha) * prev_xy

        for name, (x, y) in zip(shared, blended):
            smoothed_joints[name] = Joint(
                name=name,
                position=Point(float(x), float(y)),
                confidence=new_pose.joints[name].confidence,
            )

        return Pose(smoothed_joints)


class SmoothingState:
    """
    Previous smoothed pose per track, owned by a single pipeline run.

    Track identity is the pose's index in the detector output. A single
    subject therefore always lands in track 0.
    """

    def __init__(self, smoother: PoseSmoother):
        self.smoother = smoother
        self._previous: Dict[int, Pose] = {}

    def update(self, track_id: int, pose: Pose) -> Pose:
        """Smooth `pose` against the track's history and store the result."""
        smoothed = self.smoother.smooth(pose, self._previous.get(track_id))
        self._previous[track_id] = smoothed
        return smoothed

    def previous(self, track_id: int) -> Optional[Pose]:
        return self._previous.get(track_id)

    def reset(self):
        self._previous.clear()
