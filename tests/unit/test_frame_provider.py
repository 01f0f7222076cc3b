import asyncio
import time
import cv2
import pytest
import numpy as np
from unittest.mock import MagicMock, patch
from models.form_analysis.base import FailedToStartReadingError, NoVideoTrackFoundError
from utils.video.processor import OpenCVFrameProvider


def collect(stream):
    async def _collect():
        return [frame async for frame in stream]
    return asyncio.run(_collect())


def mock_capture(opened=True, width=640, height=480, grabs=(), retrieves=(), positions=()):
    """Create a VideoCapture double returning the given grab/retrieve results."""
    cap = MagicMock()
    cap.isOpened.return_value = opened
    cap.grab.side_effect = list(grabs)
    cap.retrieve.side_effect = list(retrieves)
    position_iter = iter(positions)
    
    def get(prop):
        if prop == cv2.CAP_PROP_FRAME_WIDTH:
            return width
        if prop == cv2.CAP_PROP_FRAME_HEIGHT:
            return height
        if prop == cv2.CAP_PROP_POS_MSEC:
            return next(position_iter)
        if prop == cv2.CAP_PROP_FPS:
            return 30.0
        if prop == cv2.CAP_PROP_FRAME_COUNT:
            return 90
        return 0
    
    cap.get.side_effect = get
    return cap


class TestOpenCVFrameProvider:
    
    def setup_method(self):
        """Set up test instance."""
        self.provider = OpenCVFrameProvider()
        self.image = np.zeros((480, 640, 3), dtype=np.uint8)
    
    @patch('utils.video.processor.cv2.VideoCapture')
    def test_frames_in_order(self, mock_capture_cls):
        cap = mock_capture(
            grabs=[True, True, False],
            retrieves=[(True, self.image), (True, self.image)],
            positions=[0.0, 33.0],
        )
        mock_capture_cls.return_value = cap
        
        frames = collect(self.provider.frame_stream("squat.mp4"))
        
        assert [frame.timestamp for frame in frames] == [0.0, 0.033]
        assert all(frame.image is self.image for frame in frames)
        cap.release.assert_called_once()
    
    @patch('utils.video.processor.cv2.VideoCapture')
    def test_undecodable_frame_has_no_image(self, mock_capture_cls):
        cap = mock_capture(
            grabs=[True, True, True, False],
            retrieves=[(True, self.image), (False, None), (True, self.image)],
            positions=[0.0, 33.0, 66.0],
        )
        mock_capture_cls.return_value = cap
        
        frames = collect(self.provider.frame_stream("squat.mp4"))
        
        assert len(frames) == 3
        assert frames[1].image is None
        assert frames[2].image is self.image
    
    @patch('utils.video.processor.cv2.VideoCapture')
    def test_unopenable_source(self, mock_capture_cls):
        mock_capture_cls.return_value = mock_capture(opened=False)
        with pytest.raises(FailedToStartReadingError):
            collect(self.provider.frame_stream("missing.mp4"))
    
    @patch('utils.video.processor.cv2.VideoCapture')
    def test_no_video_track(self, mock_capture_cls):
        cap = mock_capture(width=0, height=0)
        mock_capture_cls.return_value = cap
        with pytest.raises(NoVideoTrackFoundError):
            collect(self.provider.frame_stream("audio_only.mp4"))
        cap.release.assert_called_once()
    
    @patch('utils.video.processor.cv2.VideoCapture')
    def test_closing_stream_releases_capture(self, mock_capture_cls):
        cap = mock_capture(
            grabs=[True, True, True],
            retrieves=[(True, self.image)] * 3,
            positions=[0.0, 33.0, 66.0],
        )
        mock_capture_cls.return_value = cap
        
        async def take_first():
            stream = self.provider.frame_stream("squat.mp4")
            frame = await stream.__anext__()
            await stream.aclose()
            return frame
        
        frame = asyncio.run(take_first())
        assert frame.timestamp == 0.0
        cap.release.assert_called_once()
        assert cap.grab.call_count == 1
    
    @patch('utils.video.processor.cv2.VideoCapture')
    def test_get_video_info(self, mock_capture_cls):
        mock_capture_cls.return_value = mock_capture()
        info = OpenCVFrameProvider.get_video_info("squat.mp4")
        assert info['width'] == 640
        assert info['height'] == 480
        assert info['frame_count'] == 90
        assert info['duration'] == pytest.approx(3.0)
    
    @patch('utils.video.processor.cv2.VideoCapture')
    def test_get_video_info_unopenable(self, mock_capture_cls):
        mock_capture_cls.return_value = mock_capture(opened=False)
        assert OpenCVFrameProvider.get_video_info("missing.mp4") == {}
    
    @patch('utils.video.processor.cv2.VideoCapture')
    def test_cancelled_read_finishes_before_release(self, mock_capture_cls):
        """The capture is not released while grab() runs in its worker thread."""
        events = []
        cap = mock_capture(positions=[0.0])
        
        def slow_grab():
            events.append("grab-start")
            time.sleep(0.3)
            events.append("grab-end")
            return True
        
        cap.grab.side_effect = slow_grab
        cap.retrieve.side_effect = [(True, self.image)]
        cap.release.side_effect = lambda: events.append("release")
        mock_capture_cls.return_value = cap
        
        async def cancel_during_read():
            stream = self.provider.frame_stream("squat.mp4")
            
            async def first_frame():
                return await stream.__anext__()
            
            task = asyncio.create_task(first_frame())
            while "grab-start" not in events:
                await asyncio.sleep(0.01)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task
        
        asyncio.run(cancel_during_read())
        
        assert events == ["grab-start", "grab-end", "release"]
