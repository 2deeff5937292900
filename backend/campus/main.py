from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from campus.api.routes import auth, class_sessions, courses, departments, health, lecturers, reports, students
from campus.core.config import get_settings
from campus.core.exceptions import AppError
from campus.core.logging import configure_logging
from campus.core.middleware import RequestSizeLimitMiddleware, RequestTimingMiddleware, SecurityHeadersMiddleware
from campus.db.bootstrap import ensure_runtime_schema_compatibility

settings = get_settings()
configure_logging(settings.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    ensure_runtime_schema_compatibility()
    yield


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    logger.warning("%s %s rejected with %s: %s", request.method, request.url.path, exc.code, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.message, "code": exc.code, "details": exc.details},
    )


app = FastAPI(title=settings.project_name, lifespan=lifespan)
app.add_exception_handler(AppError, app_error_handler)

app.add_middleware(RequestTimingMiddleware)
app.add_middleware(RequestSizeLimitMiddleware, max_bytes=settings.max_request_size_bytes)
app.add_middleware(SecurityHeadersMiddleware, settings=settings)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router, prefix=settings.api_prefix, tags=["health"])
app.include_router(auth.router, prefix=f"{settings.api_prefix}/auth", tags=["auth"])
app.include_router(departments.router, prefix=f"{settings.api_prefix}/departments", tags=["departments"])
app.include_router(courses.router, prefix=f"{settings.api_prefix}/courses", tags=["courses"])
app.include_router(lecturers.router, prefix=f"{settings.api_prefix}/lecturers", tags=["lecturers"])
app.include_router(students.router, prefix=f"{settings.api_prefix}/students", tags=["students"])
app.include_router(class_sessions.router, prefix=f"{settings.api_prefix}/class-sessions", tags=["class-sessions"])
app.include_router(reports.router, prefix=f"{settings.api_prefix}/reports", tags=["reports"])
