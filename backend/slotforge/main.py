import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from slotforge.api.routes import assignments, health, sessions, time_slots, tutors
from slotforge.core.config import get_settings
from slotforge.core.exceptions import AppError
from slotforge.db.bootstrap import ensure_runtime_schema_compatibility

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    ensure_runtime_schema_compatibility()
    logger.info("SLOTFORGE STARTED | timezone=%s | api_prefix=%s", settings.schedule_timezone, settings.api_prefix)
    yield


async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("REQUEST FAILED | path=%s | message=%s", request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.message, "details": exc.details},
    )


app = FastAPI(title=settings.project_name, lifespan=lifespan)
app.add_exception_handler(AppError, app_error_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router, prefix=settings.api_prefix, tags=["health"])
app.include_router(tutors.router, prefix=settings.api_prefix, tags=["tutors"])
app.include_router(time_slots.router, prefix=settings.api_prefix, tags=["time-slots"])
app.include_router(assignments.router, prefix=settings.api_prefix, tags=["assignments"])
app.include_router(sessions.router, prefix=settings.api_prefix, tags=["sessions"])
