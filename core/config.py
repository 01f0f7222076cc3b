from pydantic_settings import BaseSettings
from typing import List
import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

class Settings(BaseSettings):
    """
    Application settings.
    """
    # API Config
    API_V1_STR: str = "/api/v1"
    PROJECT_NAME: str = "PoseKit"
    
    # Analysis Config
    SMOOTHING_FACTOR: float = 0.15  # 1.0 disables smoothing
    RULE_SET: List[str] = ["back_straight", "squat_depth"]
    
    # MediaPipe Config
    MEDIAPIPE_MODEL_COMPLEXITY: int = 1  # 0, 1, or 2 (higher = more accurate but slower)
    MIN_JOINT_CONFIDENCE: float = 0.1
    
    # Upload Config
    TEMP_UPLOAD_DIR: str = "temp/uploads"
    MAX_VIDEO_SIZE_MB: int = 50
    SUPPORTED_VIDEO_FORMATS: List[str] = ["mp4", "mov", "avi"]
    
    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

# Create global settings object
settings = Settings()

# Ensure temporary directories exist
os.makedirs(settings.TEMP_UPLOAD_DIR, exist_ok=True)
