import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from leave_tracker.core.config import settings
from leave_tracker.core.errors import register_exception_handlers

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: launch the auto-complete sweep
    from leave_tracker.services.leave.scheduler import start_scheduler, stop_scheduler
    start_scheduler()
    yield
    # Shutdown: stop the sweep
    stop_scheduler()


app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
register_exception_handlers(app)

# ── Routers ───────────────────────────────────────────────────────────────────
from leave_tracker.api.v1.auth import router as auth_router  # noqa: E402
from leave_tracker.api.v1.leave import router as leave_router  # noqa: E402
from leave_tracker.api.v1.periods import router as periods_router  # noqa: E402
from leave_tracker.api.v1.students import router as students_router  # noqa: E402

app.include_router(auth_router, prefix="/api/v1")
app.include_router(periods_router, prefix="/api/v1")
app.include_router(students_router, prefix="/api/v1")
app.include_router(leave_router, prefix="/api/v1")


@app.get("/health")
async def health_check():
    return {"status": "healthy", "service": settings.APP_NAME}
