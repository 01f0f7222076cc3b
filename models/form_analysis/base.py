"""
Interfaces for the collaborators the pipeline consumes.

Frame decoding and pose detection live behind these so the pipeline can be
driven by OpenCV and MediaPipe in production and by fakes in tests.
"""

from abc import ABC, abstractmethod
from typing import AsyncIterator, List

import numpy as np

from .types import Frame, Pose


class VideoProcessorError(Exception):
    """Resource-level failure while opening or reading a video source."""


class NoVideoTrackFoundError(VideoProcessorError):
    def __init__(self, message: str = "A valid video track could not be found in the provided file."):
        super().__init__(message)


class FailedToStartReadingError(VideoProcessorError):
    def __init__(self, message: str = "The video reader failed to start processing video frames."):
        super().__init__(message)


class PoseDetectionError(Exception):
    """The pose detector failed on a frame."""


class FrameProvider(ABC):
    """Provides a stream of timestamped frames from a video source."""

    @abstractmethod
    def frame_stream(self, source: str) -> AsyncIterator[Frame]:
        """
        Stream frames from a video source in presentation order.

        Args:
            source: Path or URL of the video

        Returns:
            Async iterator of Frame objects. Raises VideoProcessorError when
            the source cannot be read.
        """


class PoseEstimator(ABC):
    """Estimates human poses from a single image."""

    @abstractmethod
    async def estimate_poses(self, image: np.ndarray) -> List[Pose]:
        """
        Detect poses in an image.

        Args:
            image: Frame pixels as a numpy array

        Returns:
            One Pose per person found; empty when nobody is detected
        """

    def release(self):
        """Release any resources held by the estimator."""
