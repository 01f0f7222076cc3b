from enum import Enum
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterable, Mapping, NamedTuple, Optional, Tuple

import numpy as np


class JointName(str, Enum):
    """
    Body landmarks that the analysis can reason about.

    Values are snake_case so they serialize cleanly to JSON.
    """
    LEFT_SHOULDER = "left_shoulder"
    RIGHT_SHOULDER = "right_shoulder"
    LEFT_ELBOW = "left_elbow"
    RIGHT_ELBOW = "right_elbow"
    LEFT_WRIST = "left_wrist"
    RIGHT_WRIST = "right_wrist"
    LEFT_HIP = "left_hip"
    RIGHT_HIP = "right_hip"
    LEFT_KNEE = "left_knee"
    RIGHT_KNEE = "right_knee"
    LEFT_ANKLE = "left_ankle"
    RIGHT_ANKLE = "right_ankle"


class Point(NamedTuple):
    """Normalized 2D position. Origin is bottom-left, so larger y is higher."""
    x: float
    y: float


@dataclass(frozen=True)
class Joint:
    """A single detected landmark with the detector's confidence in it."""
    name: JointName
    position: Point
    confidence: float

    def __post_init__(self):
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"Joint confidence must be within [0, 1], got {self.confidence}")
        if not isinstance(self.position, Point):
            object.__setattr__(self, "position", Point(*self.position))


@dataclass(frozen=True)
class Pose:
    """
    The joints detected for one person in one frame.

    Missing keys mean the joint was not confidently detected. The mapping is
    read-only; smoothing produces a new Pose instead of editing this one.
    """
    joints: Mapping[JointName, Joint] = field(default_factory=dict)

    def __post_init__(self):
        for key, joint in self.joints.items():
            if key != joint.name:
                raise ValueError(f"Joint stored under {key!r} is named {joint.name!r}")
        object.__setattr__(self, "joints", MappingProxyType(dict(self.joints)))

    @classmethod
    def from_joints(cls, joints: Iterable[Joint]) -> "Pose":
        """Build a pose keyed by each joint's own name."""
        return cls({joint.name: joint for joint in joints})

    def get(self, name: JointName) -> Optional[Joint]:
        return self.joints.get(name)

    def __contains__(self, name) -> bool:
        return name in self.joints

    def __len__(self) -> int:
        return len(self.joints)

    def __hash__(self) -> int:
        return hash(frozenset(self.joints.items()))

    def to_dict(self) -> Dict[str, Any]:
        return {
            name.value: {
                "x": float(joint.position.x),
                "y": float(joint.position.y),
                "confidence": float(joint.confidence),
            }
            for name, joint in self.joints.items()
        }


_FEEDBACK_MESSAGES = {
    "keep_back_straight": "Keep your back straight to protect your spine.",
    "squat_deeper": "Squat deeper to engage more muscles.",
    "good_form": "Excellent form! Keep it up.",
}

_FEEDBACK_SYMBOLS = {
    "keep_back_straight": "figure.stand.line.dotted.figure",
    "squat_deeper": "arrow.down.to.line.compact",
    "good_form": "checkmark.circle.fill",
}


class FormFeedback(str, Enum):
    """
    A discrete piece of feedback about the user's exercise form.

    Options:
    - KEEP_BACK_STRAIGHT: Torso is leaning past the hips
    - SQUAT_DEEPER: Hips did not reach knee level
    - GOOD_FORM: Every configured rule passed
    """
    KEEP_BACK_STRAIGHT = "keep_back_straight"
    SQUAT_DEEPER = "squat_deeper"
    GOOD_FORM = "good_form"

    @property
    def message(self) -> str:
        """User-facing description of the feedback."""
        return _FEEDBACK_MESSAGES[self.value]

    @property
    def symbol_name(self) -> str:
        """Icon name a client can use to display the feedback."""
        return _FEEDBACK_SYMBOLS[self.value]

    @property
    def is_positive(self) -> bool:
        return self is FormFeedback.GOOD_FORM

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.value,
            "message": self.message,
            "symbol": self.symbol_name,
            "is_positive": self.is_positive,
        }


@dataclass(frozen=True, eq=False)
class Frame:
    """A timestamped sample from a frame source. `image` is None when the sample had no decodable buffer."""
    timestamp: float
    image: Optional[np.ndarray] = None


@dataclass(frozen=True)
class FrameAnalysis:
    """
    Complete analysis result for a single video frame.

    Attributes:
        timestamp: Presentation time of the frame in seconds
        poses: Smoothed poses detected in the frame
        feedback: Feedback for every pose, in pose order
    """
    timestamp: float
    poses: Tuple[Pose, ...] = ()
    feedback: Tuple[FormFeedback, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": float(self.timestamp),
            "poses": [pose.to_dict() for pose in self.poses],
            "feedback": [item.value for item in self.feedback],
        }
