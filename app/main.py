# app/main.py
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from concurrent.futures import ThreadPoolExecutor
import logging
import os

from app.config.settings import settings
from app.delivery.api.mockups import router
from app.domain.compositor import Compositor
from app.domain.errors import MockupError
from app.domain.template_registry import DirectoryTemplateSource, TemplateRegistry
from app.infrastructure.http.design_fetcher import DesignFetcher

logger = logging.getLogger("uvicorn.error")

@asynccontextmanager
async def lifespan(app: FastAPI):
    cpu_workers = settings.CPU_WORKERS or min(4, os.cpu_count() or 1)
    displacement_workers = settings.DISPLACEMENT_WORKERS or (os.cpu_count() or 1)
    app.state.cpu_executor = ThreadPoolExecutor(max_workers=cpu_workers, thread_name_prefix="mockup-cpu")
    app.state.displacement_executor = ThreadPoolExecutor(max_workers=displacement_workers, thread_name_prefix="mockup-disp")
    app.state.io_executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="mockup-io")
    logger.info(f"Service '{settings.PROJECT_NAME}' starting (mode: {settings.ENVIRONMENT}).")
    logger.info(f"Executors created: cpu={cpu_workers}, displacement={displacement_workers}, io=4.")

    registry = TemplateRegistry()
    count = await registry.reload(DirectoryTemplateSource(settings.TEMPLATES_DIR), app.state.io_executor)
    logger.info(f"Loaded {count} template(s) from {settings.TEMPLATES_DIR}.")

    app.state.registry = registry
    app.state.compositor = Compositor(
        registry=registry,
        fetcher=DesignFetcher(
            timeout_seconds=settings.FETCH_TIMEOUT_SECONDS,
            user_agent=settings.USER_AGENT,
            max_bytes=settings.MAX_DESIGN_BYTES,
        ),
        cpu_executor=app.state.cpu_executor,
        displacement_executor=app.state.displacement_executor,
        band_rows=settings.DISPLACEMENT_BAND_ROWS,
    )
    yield
    logger.info("Shutting down executors...")
    app.state.cpu_executor.shutdown(wait=True)
    app.state.displacement_executor.shutdown(wait=True)
    app.state.io_executor.shutdown(wait=True)
    logger.info("Service stopped.")

app = FastAPI(
    title="Mockup Generation Service",
    description="Composites designs onto product templates with displacement mapping and blend modes",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.ENVIRONMENT != "production" else None,
    redoc_url="/redoc" if settings.ENVIRONMENT != "production" else None,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_HOSTS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.exception_handler(MockupError)
async def handle_mockup_error(request: Request, exc: MockupError):
    logger.warning(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"success": False, "error": exc.to_dict()})

app.include_router(router, prefix=settings.API_V1_STR)

@app.get("/")
async def root():
    return {"message": "Mockup Generation Service", "version": "0.1.0", "status": "ok"}

@app.get("/health")
async def health_check(request: Request):
    registry = getattr(request.app.state, "registry", None)
    return {
        "status": "ok",
        "service": settings.PROJECT_NAME,
        "templates_loaded": registry.count() if registry is not None else 0,
    }
