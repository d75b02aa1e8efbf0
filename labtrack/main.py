import logging
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from labtrack.api import dispatch
from labtrack.config import settings
from labtrack.database import init_db
from labtrack.errors import LabTrackError, ServerError
from labtrack.scheduler import start_scheduler, stop_scheduler

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    if settings.SCHEDULER_ENABLED:
        start_scheduler()
    yield
    if settings.SCHEDULER_ENABLED:
        stop_scheduler()


app = FastAPI(
    title="LabTrack API",
    description="Lab inventory: items, deliveries, checkouts, purchase orders and Slack notifications",
    version="1.0.0",
    lifespan=lifespan,
)


@app.exception_handler(LabTrackError)
async def labtrack_error_handler(request: Request, exc: LabTrackError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Return JSON for unhandled exceptions without exposing their internals."""
    logger.error("Unhandled error: %s\n%s", exc, traceback.format_exc())
    return JSONResponse(status_code=500, content=ServerError("Internal server error").to_dict())


app.include_router(dispatch.router, prefix="/api/v1")


@app.get("/health")
def health():
    return {"status": "ok"}
