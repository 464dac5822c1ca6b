# app/infrastructure/cloudinary/upload_file.py
from io import BytesIO
from typing import Optional
import cloudinary, cloudinary.uploader
from app.config.settings import settings


_configured = False

def _ensure_configured() -> None:
    global _configured
    if _configured:
        return
    cloudinary.config(
        cloud_name=settings.CLOUDINARY_CLOUD_NAME,
        api_key=settings.CLOUDINARY_API_KEY,
        api_secret=settings.CLOUDINARY_API_SECRET,
        secure=True,
    )
    _configured = True

def upload_png_bytes(
    png_bytes: bytes,
    public_id: str,
    folder: Optional[str] = None,
    overwrite: bool = True,
    tags: Optional[list[str]] = None,
) -> str:
    # Bytes are already PNG-encoded by the compositor; upload them untouched
    # so the lossless output is what lands on the CDN.
    if not settings.cloudinary_enabled:
        raise RuntimeError("Cloudinary is not configured")
    _ensure_configured()

    buf = BytesIO(png_bytes)
    res = cloudinary.uploader.upload(
        buf,
        resource_type="image",
        folder=folder or settings.CLOUDINARY_FOLDER,
        public_id=public_id,
        overwrite=overwrite,
        format="png",
        tags=tags or [],
    )
    return res["secure_url"]
