"""
Form analysis module: pose smoothing, rule-based feedback and the streaming pipeline.
"""

from .types import Frame, FrameAnalysis, FormFeedback, Joint, JointName, Point, Pose
from .smoother import ExponentialMovingAverageSmoother, PoseSmoother, SmoothingState
from .rules import (
    AnalysisEngine,
    BackStraightRule,
    ExerciseRule,
    RULE_REGISTRY,
    RuleBasedAnalysisEngine,
    SquatDepthRule,
    build_rules,
)
from .base import (
    FailedToStartReadingError,
    FrameProvider,
    NoVideoTrackFoundError,
    PoseDetectionError,
    PoseEstimator,
    VideoProcessorError,
)
from .pipeline import AnalysisRun, FormAnalysisPipeline, PipelineConfig, PipelineState

__all__ = [
    'Frame',
    'FrameAnalysis',
    'FormFeedback',
    'Joint',
    'JointName',
    'Point',
    'Pose',
    'ExponentialMovingAverageSmoother',
    'PoseSmoother',
    'SmoothingState',
    'AnalysisEngine',
    'BackStraightRule',
    'ExerciseRule',
    'RULE_REGISTRY',
    'RuleBasedAnalysisEngine',
    'SquatDepthRule',
    'build_rules',
    'FailedToStartReadingError',
    'FrameProvider',
    'NoVideoTrackFoundError',
    'PoseDetectionError',
    'PoseEstimator',
    'VideoProcessorError',
    'AnalysisRun',
    'FormAnalysisPipeline',
    'PipelineConfig',
    'PipelineState',
]
