import asyncio
import cv2
import logging
import threading
from typing import AsyncIterator, Dict

from models.form_analysis.base import FailedToStartReadingError, FrameProvider, NoVideoTrackFoundError
from models.form_analysis.types import Frame

logger = logging.getLogger(__name__)


class OpenCVFrameProvider(FrameProvider):
    """
    OpenCVFrameProvider handles ONLY reading frames from a video source.

    Responsibilities:
    - Opening the video and validating that it has a decodable track
    - Frame-by-frame reading off the event loop
    - Timestamping each frame

    This class does NOT handle pose detection or analysis.
    """

    @staticmethod
    def get_video_info(video_path: str) -> Dict:
        """
        Get information about a video file.

        Args:
            video_path: Path to the video file

        Returns:
            Dictionary with video properties, empty if the file cannot be opened
        """
        cap = cv2.VideoCapture(video_path)
        if not cap.isOpened():
            return {}

        fps = cap.get(cv2.CAP_PROP_FPS)
        frame_count = int(cap.get(cv2.CAP_PROP_FRAME_COUNT))
        info = {
            'width': int(cap.get(cv2.CAP_PROP_FRAME_WIDTH)),
            'height': int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT)),
            'fps': fps,
            'frame_count': frame_count,
            'duration': frame_count / fps if fps > 0 else 0.0,
        }

        cap.release()
        return info

    @staticmethod
    def _open(source: str):
        cap = cv2.VideoCapture(source)
        if not cap.isOpened():
            cap.release()
            raise FailedToStartReadingError(f"Could not open video source: {source}")

        width = int(cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        height = int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        if width <= 0 or height <= 0:
            cap.release()
            raise NoVideoTrackFoundError()
        return cap

    @staticmethod
    def _read_next(cap, lock: threading.Lock):
        """Grab the next sample. Returns (grabbed, timestamp, frame or None)."""
        with lock:
            if not cap.grab():
                return False, 0.0, None
            timestamp = cap.get(cv2.CAP_PROP_POS_MSEC) / 1000.0
            ok, frame = cap.retrieve()
        return True, timestamp, frame if ok else None

    @staticmethod
    def _release(cap, lock: threading.Lock):
        # A cancelled read may still be running in its worker thread
        with lock:
            cap.release()

    async def frame_stream(self, source: str) -> AsyncIterator[Frame]:
        cap = await asyncio.to_thread(self._open, source)
        lock = threading.Lock()
        logger.info(f"Reading frames from {source}")
        try:
            while True:
                grabbed, timestamp, image = await asyncio.to_thread(self._read_next, cap, lock)
                if not grabbed:
                    break
                if image is None:
                    logger.debug(f"Could not decode frame at {timestamp:.3f}s")
                yield Frame(timestamp=timestamp, image=image)
        finally:
            await asyncio.to_thread(self._release, cap, lock)
