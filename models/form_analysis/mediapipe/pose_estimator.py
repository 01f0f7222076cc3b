import asyncio
import threading
import cv2
import numpy as np
from typing import Dict, List, Optional
import logging
from dataclasses import dataclass

from ..base import PoseDetectionError, PoseEstimator
from ..types import Joint, JointName, Point, Pose

logger = logging.getLogger(__name__)

# MediaPipe PoseLandmark indices for the joints we track
LANDMARK_INDICES: Dict[int, JointName] = {
    11: JointName.LEFT_SHOULDER,
    12: JointName.RIGHT_SHOULDER,
    13: JointName.LEFT_ELBOW,
    14: JointName.RIGHT_ELBOW,
    15: JointName.LEFT_WRIST,
    16: JointName.RIGHT_WRIST,
    23: JointName.LEFT_HIP,
    24: JointName.RIGHT_HIP,
    25: JointName.LEFT_KNEE,
    26: JointName.RIGHT_KNEE,
    27: JointName.LEFT_ANKLE,
    28: JointName.RIGHT_ANKLE,
}


@dataclass
class MediaPipePoseEstimatorConfig:
    """Configuration for pose detection."""
    model_complexity: int = 1
    min_detection_confidence: float = 0.5
    min_tracking_confidence: float = 0.5
    smooth_landmarks: bool = False  # Temporal smoothing is done by the pipeline
    min_joint_confidence: float = 0.1
    bgr_input: bool = True  # OpenCV frames arrive as BGR


class MediaPipePoseEstimator(PoseEstimator):
    """
    MediaPipePoseEstimator handles ONLY the detection of body landmarks.

    Responsibilities:
    - Interfacing with MediaPipe for pose detection
    - Dropping landmarks below the confidence threshold
    - Converting MediaPipe's top-left coordinates to bottom-left ones

    This class does NOT handle:
    - Smoothing
    - Video decoding
    - Form analysis
    """

    def __init__(self, config: Optional[MediaPipePoseEstimatorConfig] = None):
        self.config = config or MediaPipePoseEstimatorConfig()
        self.pose = None  # Lazy initialization
        # MediaPipe graphs are not re-entrant
        self._lock = threading.Lock()

    def _initialize_detector(self):
        """Initialize the MediaPipe pose detector if not already initialized."""
        if self.pose is None:
            try:
                import mediapipe as mp
            except ImportError as e:
                raise PoseDetectionError(
                    "MediaPipe is not installed. Install pose deps with: pip install 'posekit[pose]'"
                ) from e

            self.pose = mp.solutions.pose.Pose(
                static_image_mode=False,
                model_complexity=self.config.model_complexity,
                min_detection_confidence=self.config.min_detection_confidence,
                min_tracking_confidence=self.config.min_tracking_confidence,
                enable_segmentation=False,
                smooth_landmarks=self.config.smooth_landmarks,
            )
            logger.info(f"Initialized MediaPipe pose detector (model_complexity={self.config.model_complexity})")

    def _detect(self, image: np.ndarray):
        rgb_frame = cv2.cvtColor(image, cv2.COLOR_BGR2RGB) if self.config.bgr_input else image
        with self._lock:
            self._initialize_detector()
            return self.pose.process(rgb_frame)

    async def estimate_poses(self, image: np.ndarray) -> List[Pose]:
        try:
            results = await asyncio.to_thread(self._detect, image)
        except PoseDetectionError:
            raise
        except Exception as e:
            raise PoseDetectionError(f"Pose detection failed: {e}") from e

        # MediaPipe Pose tracks a single person per frame
        if not results.pose_landmarks:
            return []
        return [self.map_landmarks(results.pose_landmarks.landmark)]

    def map_landmarks(self, landmarks) -> Pose:
        """
        Convert a MediaPipe landmark list into a Pose.

        Args:
            landmarks: Sequence of landmarks with x, y and visibility

        Returns:
            Pose containing the confidently detected joints
        """
        joints = []
        for idx, joint_name in LANDMARK_INDICES.items():
            if idx >= len(landmarks):
                continue
            landmark = landmarks[idx]
            confidence = float(np.clip(landmark.visibility, 0.0, 1.0))
            if confidence <= self.config.min_joint_confidence:
                continue
            joints.append(Joint(
                name=joint_name,
                position=Point(float(landmark.x), 1.0 - float(landmark.y)),
                confidence=confidence,
            ))
        return Pose.from_joints(joints)

    def release(self):
        """Release any resources held by the pose estimator."""
        # Waits for an in-flight process() call in a worker thread
        with self._lock:
            if self.pose:
                self.pose.close()
                self.pose = None
