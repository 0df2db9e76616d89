"""Main FastAPI application with modularized routes."""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from examprep.config import CORS_ORIGINS, LOG_LEVEL
from examprep.database import init_db
from examprep.errors import ExamPrepError, exam_prep_error_handler
from examprep.logging_setup import setup_console_logging
from examprep.routes import attempts, auth, notifications, tests
from examprep.services.cleanup_service import schedule_expiry_sweep

setup_console_logging(LOG_LEVEL)

app = FastAPI(title="Exam Prep API")

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(ExamPrepError, exam_prep_error_handler)


# Startup events
@app.on_event("startup")
def startup_events() -> None:
    """Initialize database and start the expiry sweep on startup."""
    init_db()
    schedule_expiry_sweep()


@app.get("/api/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


# Include routers
app.include_router(auth.router)
app.include_router(tests.router)
app.include_router(attempts.router)
app.include_router(notifications.router)
