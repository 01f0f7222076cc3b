import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import AsyncGenerator, List, Optional

from .base import FrameProvider, PoseEstimator
from .rules import AnalysisEngine
from .smoother import ExponentialMovingAverageSmoother, PoseSmoother, SmoothingState
from .types import FrameAnalysis, Pose

logger = logging.getLogger(__name__)


@dataclass
class PipelineConfig:
    """Configuration for the form analysis pipeline."""
    smoothing_factor: float = 0.15
    # Progress is logged every N emitted frames
    log_every_n_frames: int = 100

    def __post_init__(self):
        if self.log_every_n_frames < 1:
            raise ValueError(f"log_every_n_frames must be at least 1, got {self.log_every_n_frames}")


class PipelineState(str, Enum):
    """Lifecycle of a single pipeline run."""
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class AnalysisRun:
    """
    One invocation of the pipeline over one video source.

    The run is an async iterator of FrameAnalysis. Nothing happens until the
    first item is requested, and the next frame is only pulled from the
    source when the consumer asks for the next result. Each run owns its own
    smoothing state.
    """

    def __init__(self, source: str, frame_provider: FrameProvider, pose_estimator: PoseEstimator,
                 analysis_engine: AnalysisEngine, smoother: PoseSmoother, config: PipelineConfig):
        self.source = source
        self.state = PipelineState.IDLE
        self.frames_emitted = 0
        self.frames_skipped = 0

        self._frame_provider = frame_provider
        self._pose_estimator = pose_estimator
        self._analysis_engine = analysis_engine
        self._smoothing = SmoothingState(smoother)
        self._config = config
        self._cancel_requested = False
        self._generator = self._analyze_frames()

    def __aiter__(self):
        return self

    async def __anext__(self) -> FrameAnalysis:
        return await self._generator.__anext__()

    async def cancel(self):
        """
        Stop the run and close the frame source.

        If another task is inside __anext__, the run stops before pulling
        the next frame instead.
        """
        self._cancel_requested = True
        if not self._generator.ag_running:
            await self.aclose()

    async def aclose(self):
        """Stop the run now and close the frame source."""
        if self.state in (PipelineState.IDLE, PipelineState.RUNNING):
            self._cancel_requested = True
        await self._generator.aclose()
        if self.state is PipelineState.IDLE:
            self.state = PipelineState.CANCELLED

    async def collect(self) -> List[FrameAnalysis]:
        """Drain the run into a list."""
        return [analysis async for analysis in self]

    def _smooth_poses(self, poses: List[Pose]) -> List[Pose]:
        return [self._smoothing.update(track_id, pose) for track_id, pose in enumerate(poses)]

    async def _analyze_frames(self) -> AsyncGenerator[FrameAnalysis, None]:
        self.state = PipelineState.RUNNING
        logger.info(f"Starting form analysis of {self.source}")

        frames = None
        try:
            frames = self._frame_provider.frame_stream(self.source)
            while not self._cancel_requested:
                try:
                    frame = await frames.__anext__()
                except StopAsyncIteration:
                    break

                if frame.image is None:
                    self.frames_skipped += 1
                    logger.debug(f"Skipping frame at {frame.timestamp:.3f}s: no image buffer")
                    continue

                poses = await self._pose_estimator.estimate_poses(frame.image)
                smoothed = self._smooth_poses(poses)
                feedback = [item for pose in smoothed for item in self._analysis_engine.analyze(pose)]

                analysis = FrameAnalysis(
                    timestamp=frame.timestamp,
                    poses=tuple(smoothed),
                    feedback=tuple(feedback),
                )
                self.frames_emitted += 1
                if self.frames_emitted % self._config.log_every_n_frames == 0:
                    logger.info(f"Processed {self.frames_emitted} frames of {self.source}")

                yield analysis
        except (GeneratorExit, asyncio.CancelledError):
            self.state = PipelineState.CANCELLED
            logger.info(f"Form analysis of {self.source} cancelled after {self.frames_emitted} frames")
            raise
        except Exception as e:
            self.state = PipelineState.FAILED
            logger.error(f"Error processing video {self.source}: {e}")
            raise
        finally:
            if frames is not None and hasattr(frames, "aclose"):
                await frames.aclose()

        if self._cancel_requested:
            self.state = PipelineState.CANCELLED
            logger.info(f"Form analysis of {self.source} cancelled after {self.frames_emitted} frames")
        else:
            self.state = PipelineState.COMPLETED
            logger.info(f"Completed processing {self.frames_emitted} frames "
                        f"({self.frames_skipped} skipped) of {self.source}")


class FormAnalysisPipeline:
    """
    FormAnalysisPipeline connects the collaborators for video analysis.

    This class orchestrates the process:
    1. FrameProvider streams timestamped frames
    2. PoseEstimator detects poses in each frame
    3. PoseSmoother steadies each pose against its previous frame
    4. AnalysisEngine turns each smoothed pose into feedback

    Every call to process_video returns an independent AnalysisRun, so one
    pipeline can analyze several videos concurrently.
    """

    def __init__(self, frame_provider: FrameProvider, pose_estimator: PoseEstimator,
                 analysis_engine: AnalysisEngine, smoother: Optional[PoseSmoother] = None,
                 config: Optional[PipelineConfig] = None):
        """
        Initialize the pipeline.

        Args:
            frame_provider: Source of video frames
            pose_estimator: Detects poses in a frame
            analysis_engine: Produces feedback for a pose
            smoother: Smoothing strategy; EMA with the configured factor if omitted
            config: Configuration for the pipeline
        """
        self.config = config or PipelineConfig()
        self.frame_provider = frame_provider
        self.pose_estimator = pose_estimator
        self.analysis_engine = analysis_engine
        self.smoother = smoother or ExponentialMovingAverageSmoother(self.config.smoothing_factor)

    def process_video(self, source: str) -> AnalysisRun:
        """
        Analyze a video frame by frame.

        Args:
            source: Path or URL of the video

        Returns:
            AnalysisRun yielding one FrameAnalysis per decodable frame
        """
        return AnalysisRun(
            source,
            frame_provider=self.frame_provider,
            pose_estimator=self.pose_estimator,
            analysis_engine=self.analysis_engine,
            smoother=self.smoother,
            config=self.config,
        )

    def release(self):
        """Release resources held by the pipeline."""
        self.pose_estimator.release()
