# app/delivery/api/mockups.py
from fastapi import APIRouter, Request, Depends, HTTPException, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from app.delivery.schemas.body import (
    Dimensions,
    GenerateMetadata,
    GenerateRequest,
    GenerateResponse,
    ReloadResponse,
    TemplateResponse,
    TemplatesListResponse,
)
from app.config.settings import settings
from app.domain.compositor import Compositor, MockupRequest
from app.domain.errors import MockupError, TemplateNotFound, UploadFailed
from app.domain.template_registry import DirectoryTemplateSource, TemplateRegistry
from app.infrastructure.cloudinary.upload_file import upload_png_bytes
import secrets
import threading
import logging
import traceback
import asyncio
import uuid

router = APIRouter()
security = HTTPBasic()
logger = logging.getLogger("uvicorn.error")

def verify_basic_auth(creds: HTTPBasicCredentials = Depends(security)) -> None:
    ok_user = secrets.compare_digest(creds.username, settings.BASIC_AUTH_USERNAME)
    ok_pass = secrets.compare_digest(creds.password, settings.BASIC_AUTH_PASSWORD)
    if not (ok_user and ok_pass):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Basic"},
        )

def _registry(request: Request) -> TemplateRegistry:
    registry = getattr(request.app.state, "registry", None)
    if registry is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service is not ready. Please try again in a moment.",
        )
    return registry

def _compositor(request: Request) -> Compositor:
    compositor = getattr(request.app.state, "compositor", None)
    if compositor is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service is not ready. Please try again in a moment.",
        )
    return compositor

@router.post("/mockups/generate", response_model=GenerateResponse, dependencies=[Depends(verify_basic_auth)])
async def generate_mockup(request: Request, body: GenerateRequest):
    logger.info(f"=== ENDPOINT START template={body.template_id} (threads={threading.active_count()}) ===")
    compositor = _compositor(request)

    mockup_request = MockupRequest(
        design_url=body.design_url,
        template_id=body.template_id,
        placement=body.placement,
        displacement_strength=body.options.displacement_strength,
    )

    try:
        result = await asyncio.wait_for(
            compositor.generate(mockup_request),
            timeout=settings.ENDPOINT_TIMEOUT_SECONDS,
        )
    except asyncio.TimeoutError:
        logger.error(f"=== ENDPOINT TIMEOUT template={body.template_id} after {settings.ENDPOINT_TIMEOUT_SECONDS}s ===")
        raise HTTPException(status_code=504, detail="Mockup generation timed out")
    except MockupError:
        raise
    except Exception as e:
        logger.error(f"=== ENDPOINT ERROR template={body.template_id}: {e} ===\n{traceback.format_exc()}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Mockup generation failed.",
        )

    mockup_url = result.url
    if body.options.upload:
        if not settings.cloudinary_enabled:
            raise HTTPException(status_code=400, detail="Upload requested but Cloudinary is not configured")
        loop = asyncio.get_running_loop()
        public_id = f"{body.template_id}_{uuid.uuid4().hex[:12]}"
        try:
            mockup_url = await loop.run_in_executor(
                getattr(request.app.state, "io_executor", None), upload_png_bytes, result.image_bytes, public_id
            )
        except Exception as e:
            logger.error(f"=== UPLOAD ERROR template={body.template_id}: {e} ===\n{traceback.format_exc()}")
            raise UploadFailed(f"{type(e).__name__}: {e}") from e

    logger.info(f"=== ENDPOINT SUCCESS template={body.template_id} in {result.generation_time_ms}ms ===")
    return GenerateResponse(
        mockup_url=mockup_url,
        metadata=GenerateMetadata(
            generation_time_ms=result.generation_time_ms,
            template_used=body.template_id,
            dimensions=Dimensions(width=result.width, height=result.height),
        ),
    )

@router.get("/templates", response_model=TemplatesListResponse)
async def list_templates(request: Request):
    snapshot = _registry(request).snapshot()
    data = [snapshot[template_id].summary() for template_id in sorted(snapshot)]
    return TemplatesListResponse(data=data, count=len(data))

@router.get("/templates/{template_id}", response_model=TemplateResponse)
async def get_template(request: Request, template_id: str):
    asset = _registry(request).get(template_id)
    if asset is None:
        raise TemplateNotFound(template_id)
    return TemplateResponse(data=asset.summary())

@router.post("/templates/reload", response_model=ReloadResponse, dependencies=[Depends(verify_basic_auth)])
async def reload_templates(request: Request):
    registry = _registry(request)
    count = await registry.reload(
        DirectoryTemplateSource(settings.TEMPLATES_DIR),
        getattr(request.app.state, "io_executor", None),
    )
    logger.info(f"Template registry reloaded from {settings.TEMPLATES_DIR}: {count} template(s).")
    return ReloadResponse(count=count)
