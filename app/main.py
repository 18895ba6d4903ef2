from contextlib import asynccontextmanager
from pathlib import Path
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from app.api import include_routers
from app.core.config import settings
from app.core.logging import setup_logging, get_logger
from app.database import init_databases, close_databases
from app.middleware.error_handler import ErrorHandlerMiddleware, register_exception_handlers
from app.middleware.logging_middleware import LoggingMiddleware
from app.services.file_service import ensure_upload_directories
from app.websockets.broadcaster import broadcaster

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    setup_logging()
    await init_databases()
    ensure_upload_directories()
    await broadcaster.start()
    logger.info(f"{settings.app_name} started (broadcast backend: {settings.broadcast_backend})")
    yield
    # Shutdown
    await broadcaster.stop()
    await close_databases()


app = FastAPI(title=settings.app_name, lifespan=lifespan)

app.add_middleware(ErrorHandlerMiddleware)
app.add_middleware(LoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# Include routers
include_routers(app, "api", [str(Path(__file__).parent / "api")])

# 업로드 파일 공개 경로
app.mount("/storage", StaticFiles(directory=settings.upload_dir, check_dir=False), name="storage")


@app.get("/")
async def root():
    return {"message": settings.app_name}
