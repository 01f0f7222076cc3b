import asyncio
import time
import pytest
import numpy as np
from unittest.mock import MagicMock, patch
from models.form_analysis.base import PoseDetectionError
from models.form_analysis.mediapipe.pose_estimator import (
    LANDMARK_INDICES,
    MediaPipePoseEstimator,
    MediaPipePoseEstimatorConfig,
)
from models.form_analysis.types import JointName


class MockLandmark:
    def __init__(self, x=0.5, y=0.25, visibility=0.9):
        self.x = x
        self.y = y
        self.z = 0.0
        self.visibility = visibility


class TestMediaPipePoseEstimator:
    
    def setup_method(self):
        """Set up test instance."""
        self.estimator = MediaPipePoseEstimator(MediaPipePoseEstimatorConfig(min_joint_confidence=0.1))
        self.image = np.zeros((48, 64, 3), dtype=np.uint8)
    
    def test_detector_is_lazy(self):
        assert self.estimator.pose is None
    
    def test_map_landmarks(self):
        """All tracked joints are mapped and y is flipped to a bottom-left origin."""
        landmarks = [MockLandmark() for _ in range(33)]
        pose = self.estimator.map_landmarks(landmarks)
        
        assert set(pose.joints) == set(LANDMARK_INDICES.values())
        hip = pose.joints[JointName.LEFT_HIP]
        assert hip.position.x == pytest.approx(0.5)
        assert hip.position.y == pytest.approx(0.75)
        assert hip.confidence == pytest.approx(0.9)
    
    def test_low_confidence_landmarks_dropped(self):
        landmarks = [MockLandmark() for _ in range(33)]
        landmarks[25] = MockLandmark(visibility=0.05)  # left knee
        landmarks[26] = MockLandmark(visibility=0.1)  # right knee, at the threshold
        pose = self.estimator.map_landmarks(landmarks)
        
        assert JointName.LEFT_KNEE not in pose
        assert JointName.RIGHT_KNEE not in pose
        assert JointName.LEFT_HIP in pose
    
    def test_short_landmark_list(self):
        """Upper-body-only results map what is present."""
        landmarks = [MockLandmark() for _ in range(17)]
        pose = self.estimator.map_landmarks(landmarks)
        assert set(pose.joints) == {
            JointName.LEFT_SHOULDER, JointName.RIGHT_SHOULDER,
            JointName.LEFT_ELBOW, JointName.RIGHT_ELBOW,
            JointName.LEFT_WRIST, JointName.RIGHT_WRIST,
        }
    
    def test_estimate_poses_no_person(self):
        results = MagicMock(pose_landmarks=None)
        with patch.object(self.estimator, "_detect", return_value=results):
            poses = asyncio.run(self.estimator.estimate_poses(self.image))
        assert poses == []
    
    def test_estimate_poses_one_person(self):
        results = MagicMock()
        results.pose_landmarks.landmark = [MockLandmark() for _ in range(33)]
        with patch.object(self.estimator, "_detect", return_value=results):
            poses = asyncio.run(self.estimator.estimate_poses(self.image))
        assert len(poses) == 1
        assert JointName.RIGHT_ANKLE in poses[0]
    
    def test_detection_failure_wrapped(self):
        with patch.object(self.estimator, "_detect", side_effect=RuntimeError("graph error")):
            with pytest.raises(PoseDetectionError, match="graph error"):
                asyncio.run(self.estimator.estimate_poses(self.image))
    
    def test_release(self):
        detector = MagicMock()
        self.estimator.pose = detector
        self.estimator.release()
        detector.close.assert_called_once()
        assert self.estimator.pose is None
    
    def test_release_waits_for_running_detection(self):
        """The graph is not closed while process() runs in its worker thread."""
        events = []
        
        class SlowGraph:
            def process(self, frame):
                events.append("process-start")
                time.sleep(0.3)
                events.append("process-end")
                return MagicMock(pose_landmarks=None)
            
            def close(self):
                events.append("close")
        
        estimator = MediaPipePoseEstimator(MediaPipePoseEstimatorConfig(bgr_input=False))
        estimator.pose = SlowGraph()
        
        async def cancel_and_release():
            task = asyncio.create_task(estimator.estimate_poses(self.image))
            while "process-start" not in events:
                await asyncio.sleep(0.01)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task
            estimator.release()
        
        asyncio.run(cancel_and_release())
        
        assert events == ["process-start", "process-end", "close"]
        assert estimator.pose is None
