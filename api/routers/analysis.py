from fastapi import APIRouter, UploadFile, File, HTTPException, Depends
from fastapi.responses import StreamingResponse
from collections import Counter
import json
import logging
import os
import shutil
import uuid

from core.config import settings
from models.form_analysis import (
    FormAnalysisPipeline,
    PipelineConfig,
    PoseDetectionError,
    RuleBasedAnalysisEngine,
    VideoProcessorError,
)
from models.form_analysis.mediapipe.pose_estimator import MediaPipePoseEstimator, MediaPipePoseEstimatorConfig
from utils.serialization import CustomJSONResponse, sanitize_for_json
from utils.video.processor import OpenCVFrameProvider

logger = logging.getLogger(__name__)

router = APIRouter()


def get_pipeline() -> FormAnalysisPipeline:
    """Build a pipeline from the application settings."""
    estimator_config = MediaPipePoseEstimatorConfig(
        model_complexity=settings.MEDIAPIPE_MODEL_COMPLEXITY,
        min_joint_confidence=settings.MIN_JOINT_CONFIDENCE,
    )
    return FormAnalysisPipeline(
        frame_provider=OpenCVFrameProvider(),
        pose_estimator=MediaPipePoseEstimator(estimator_config),
        analysis_engine=RuleBasedAnalysisEngine.from_names(settings.RULE_SET),
        config=PipelineConfig(smoothing_factor=settings.SMOOTHING_FACTOR),
    )


def _save_upload(video: UploadFile) -> str:
    """Validate and store an uploaded video, returning its temporary path."""
    file_extension = os.path.splitext(video.filename or "")[1].lower()
    if file_extension.lstrip(".") not in settings.SUPPORTED_VIDEO_FORMATS:
        raise HTTPException(
            status_code=400,
            detail=f"Unsupported video format '{file_extension}'. "
                   f"Supported: {', '.join(settings.SUPPORTED_VIDEO_FORMATS)}",
        )

    os.makedirs(settings.TEMP_UPLOAD_DIR, exist_ok=True)
    temp_file_path = os.path.join(settings.TEMP_UPLOAD_DIR, f"{uuid.uuid4()}{file_extension}")
    with open(temp_file_path, "wb") as buffer:
        shutil.copyfileobj(video.file, buffer)

    if os.path.getsize(temp_file_path) > settings.MAX_VIDEO_SIZE_MB * 1024 * 1024:
        _remove(temp_file_path)
        raise HTTPException(status_code=413, detail=f"Video exceeds {settings.MAX_VIDEO_SIZE_MB} MB")

    return temp_file_path


def _remove(path: str):
    if os.path.exists(path):
        os.remove(path)


@router.post("/analyze")
async def analyze_video(
    video: UploadFile = File(...),
    pipeline: FormAnalysisPipeline = Depends(get_pipeline),
):
    """
    Analyze exercise form in an uploaded video.
    Returns the analysis of every frame plus a count of each feedback item.
    """
    temp_file_path = _save_upload(video)
    try:
        frames = await pipeline.process_video(temp_file_path).collect()
    except VideoProcessorError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PoseDetectionError as e:
        raise HTTPException(status_code=502, detail=str(e))
    except Exception as e:
        logger.error(f"Error analyzing video: {e}")
        raise HTTPException(status_code=500, detail=str(e))
    finally:
        pipeline.release()
        _remove(temp_file_path)

    summary = Counter(item.value for analysis in frames for item in analysis.feedback)
    response = {
        "analysis_id": str(uuid.uuid4()),
        "frame_count": len(frames),
        "feedback_summary": dict(summary),
        "frames": frames,
    }
    return CustomJSONResponse(content=response)


@router.post("/analyze/stream")
async def stream_video_analysis(
    video: UploadFile = File(...),
    pipeline: FormAnalysisPipeline = Depends(get_pipeline),
):
    """
    Stream the analysis as newline-delimited JSON, one frame per line.
    A failure ends the stream with a single {"error": ...} line.
    """
    temp_file_path = _save_upload(video)
    run = pipeline.process_video(temp_file_path)

    async def ndjson_lines():
        try:
            async for analysis in run:
                yield json.dumps(sanitize_for_json(analysis)) + "\n"
        except (VideoProcessorError, PoseDetectionError) as e:
            yield json.dumps({"error": str(e)}) + "\n"
        finally:
            await run.aclose()
            pipeline.release()
            _remove(temp_file_path)

    return StreamingResponse(ndjson_lines(), media_type="application/x-ndjson")
