from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api import interview, interview_ws, voice
from .core.config import settings
from .core.database import Base, SessionLocal, engine
from .core.exceptions import AppError
from .middleware import LoggingMiddleware
from .utils.logger import logger
from .utils.voice_service import seed_default_voices


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting application", app_name=settings.app_name, version=settings.app_version)
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        seed_default_voices(db)
    finally:
        db.close()

    yield
    logger.info("Application shutdown complete")


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    debug=settings.debug,
    lifespan=lifespan,
)

app.add_middleware(LoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_allowed_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("Request failed", path=request.url.path, code=exc.code, error=exc.message)
    else:
        logger.info("Request rejected", path=request.url.path, code=exc.code, error=exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "code": exc.code})


app.include_router(interview.router, prefix="/v1", tags=["interview"])
app.include_router(interview_ws.router, prefix="/v1", tags=["interview-realtime"])
app.include_router(voice.router, prefix="/v1", tags=["voice"])


@app.get("/health")
async def health():
    return {"status": "healthy", "app": settings.app_name, "version": settings.app_version}
