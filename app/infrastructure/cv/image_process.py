# app/infrastructure/cv/image_process.py
import io
from typing import Optional, Tuple

import cv2
import numpy as np
from PIL import Image, UnidentifiedImageError

from app.domain.errors import DecodeFailed

# Thresholds for white/near-white detection
WHITE_THRESHOLD = 245   # fully transparent
LIGHT_THRESHOLD = 230   # gradual transparency
EDGE_FEATHER = 25       # feather band below LIGHT_THRESHOLD

WHITE_MAX_VARIANCE = 15
LIGHT_MAX_VARIANCE = 25
EDGE_MAX_VARIANCE = 35


def decode_rgba(data: bytes) -> np.ndarray:
    """Decode PNG/JPEG/... bytes into an (H, W, 4) uint8 RGBA array."""
    if not data:
        raise DecodeFailed("empty image data")
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            return np.array(img.convert("RGBA"), dtype=np.uint8)
    except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as e:
        raise DecodeFailed(f"{type(e).__name__}: {e}") from e


def decode_grayscale(data: bytes) -> Optional[np.ndarray]:
    arr = np.frombuffer(data, np.uint8)
    img = cv2.imdecode(arr, cv2.IMREAD_GRAYSCALE)
    return img


def to_grayscale(image: np.ndarray) -> np.ndarray:
    if image.ndim == 2:
        return image
    if image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_RGBA2GRAY)
    return cv2.cvtColor(image, cv2.COLOR_RGB2GRAY)


def resize_rgba(image: np.ndarray, size: Tuple[int, int]) -> np.ndarray:
    target_w, target_h = size
    if image.shape[1] == target_w and image.shape[0] == target_h:
        return image.copy()
    resized = Image.fromarray(image).resize((target_w, target_h), Image.Resampling.LANCZOS)
    return np.array(resized, dtype=np.uint8)


def resize_grayscale(image: np.ndarray, size: Tuple[int, int]) -> np.ndarray:
    target_w, target_h = size
    if image.shape[1] == target_w and image.shape[0] == target_h:
        return image
    return cv2.resize(image, (target_w, target_h), interpolation=cv2.INTER_LANCZOS4)


def encode_png(image: np.ndarray) -> bytes:
    buf = io.BytesIO()
    Image.fromarray(image).save(buf, format="PNG")
    return buf.getvalue()


def remove_white_background(image: np.ndarray) -> np.ndarray:
    """
    Turn white and near-white pixels transparent, keeping colour channels as-is.

    Purely pixel-local: luminance picks how white a pixel is, the spread
    between its channels picks how grey (as opposed to pastel) it is.
    """
    rgba = image if image.shape[2] == 4 else cv2.cvtColor(image, cv2.COLOR_RGB2RGBA)
    rgb = rgba[..., :3].astype(np.float64)
    r, g, b = rgb[..., 0], rgb[..., 1], rgb[..., 2]

    luminance = 0.299 * r + 0.587 * g + 0.114 * b
    channels = rgba[..., :3].astype(np.int16)
    variance = channels.max(axis=2) - channels.min(axis=2)

    alpha = np.full(luminance.shape, 255.0)

    # Evaluated in reverse priority so the stricter bands overwrite the looser ones.
    edge = (luminance >= LIGHT_THRESHOLD - EDGE_FEATHER) & (variance <= EDGE_MAX_VARIANCE)
    alpha[edge] = (LIGHT_THRESHOLD - np.maximum(luminance[edge] - EDGE_FEATHER, 0)) / EDGE_FEATHER * 255.0

    light = (luminance >= LIGHT_THRESHOLD) & (variance <= LIGHT_MAX_VARIANCE)
    alpha[light] = (255.0 - luminance[light]) / (255 - LIGHT_THRESHOLD) * 255.0

    white = (luminance >= WHITE_THRESHOLD) & (variance <= WHITE_MAX_VARIANCE)
    alpha[white] = 0.0

    out = rgba.copy()
    out[..., 3] = np.clip(alpha, 0, 255).astype(np.uint8)
    return out
