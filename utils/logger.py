import logging
import os
from datetime import datetime

def setup_logging(level: int = logging.INFO):
    """Configure logging for the application."""
    log_dir = "logs"
    os.makedirs(log_dir, exist_ok=True)
    
    today = datetime.now().strftime("%Y-%m-%d")
    log_file = os.path.join(log_dir, f"posekit_{today}.log")
    
    # Configure root logger
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler()
        ]
    )
    
    # Per-frame skips and rule failures are logged at debug level
    logging.getLogger('models.form_analysis').setLevel(logging.DEBUG)
    
    return logging.getLogger(__name__)
