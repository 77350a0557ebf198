"""
Box Cricket Scorer - live match scoring API
"""
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse

from boxcricket.config import settings
from boxcricket.database import init_db
from boxcricket.errors import ScoringError
from boxcricket.api.match import router as match_router
from boxcricket.services.broadcaster import broadcaster

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("boxcricket")

# Initialize FastAPI app
app = FastAPI(
    title="Box Cricket Scorer",
    description="Ball-by-ball scoring for self-officiated box cricket matches",
    version="0.1.0",
)

# CORS origins - configurable via environment variable
default_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]

# Add custom origins from environment (comma-separated)
if settings.CORS_ORIGINS:
    default_origins.extend([o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()])

app.add_middleware(
    CORSMiddleware,
    allow_origins=default_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(match_router, prefix="/api")


@app.exception_handler(ScoringError)
def scoring_error_handler(request: Request, exc: ScoringError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.error_code},
    )


@app.on_event("startup")
def startup_event():
    """Initialize database on startup"""
    init_db()


@app.get("/api/stream/{match_id}")
async def stream_match(match_id: int):
    """Server-Sent Events: live viewers get every committed scoring event"""
    async def event_generator():
        queue = await broadcaster.subscribe(match_id)
        try:
            while True:
                yield await queue.get()
        finally:
            # Tab closed or server shutting down
            await broadcaster.unsubscribe(match_id, queue)

    return StreamingResponse(event_generator(), media_type="text/event-stream")


@app.get("/")
def root():
    """Health check endpoint"""
    return {
        "name": "Box Cricket Scorer API",
        "version": "0.1.0",
        "status": "running",
    }


@app.get("/api/health")
def health_check():
    """API health check"""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
