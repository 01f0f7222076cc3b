import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from api.routers import analysis, feedback
from core.config import settings
from utils.logger import setup_logging

# Setup logging
logger = setup_logging()
logger.info("Starting PoseKit API")

app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Exercise form feedback from pose detections",
    version="0.1.0"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(analysis.router, prefix=settings.API_V1_STR, tags=["Form Analysis"])
app.include_router(feedback.router, prefix=settings.API_V1_STR, tags=["Feedback"])

@app.get("/")
def read_root():
    return {"message": "Welcome to PoseKit API", "version": "0.1.0"}

@app.get("/health")
def health_check():
    return {"status": "healthy"}

if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
