# app/infrastructure/cv/displacement.py
"""
Displacement mapping: warps a design so it follows the folds of the fabric.

The displacement map is grayscale:
- black (0)   pulls pixels from up/left
- gray (128)  leaves them in place
- white (255) pulls pixels from down/right

One scalar field drives both axes. Every output row depends only on the
inputs, never on other output rows, so rows are computed in independent bands
that can be spread over a thread pool without changing the result.
"""
from concurrent.futures import Executor
from typing import List, Optional

import numpy as np

from app.infrastructure.cv.image_process import resize_grayscale, to_grayscale

DEFAULT_BAND_ROWS = 64


def _displace_rows(design: np.ndarray, disp: np.ndarray, strength: float, y_start: int, y_end: int) -> np.ndarray:
    height, width = design.shape[:2]

    ys = np.arange(y_start, y_end, dtype=np.float64)[:, None]
    xs = np.arange(width, dtype=np.float64)[None, :]

    d = disp[y_start:y_end].astype(np.float64) / 255.0 - 0.5
    src_x = np.clip(xs + d * strength, 0.0, width - 1)
    src_y = np.clip(ys + d * strength, 0.0, height - 1)

    x0 = np.floor(src_x).astype(np.intp)
    y0 = np.floor(src_y).astype(np.intp)
    x1 = np.minimum(x0 + 1, width - 1)
    y1 = np.minimum(y0 + 1, height - 1)

    dx = (src_x - x0)[..., None]
    dy = (src_y - y0)[..., None]

    p00 = design[y0, x0].astype(np.float64)
    p10 = design[y0, x1].astype(np.float64)
    p01 = design[y1, x0].astype(np.float64)
    p11 = design[y1, x1].astype(np.float64)

    value = (
        p00 * (1.0 - dx) * (1.0 - dy)
        + p10 * dx * (1.0 - dy)
        + p01 * (1.0 - dx) * dy
        + p11 * dx * dy
    )
    return np.clip(np.rint(value), 0, 255).astype(np.uint8)


def _bands(height: int, band_rows: int) -> List[tuple]:
    band_rows = max(1, int(band_rows))
    return [(y, min(y + band_rows, height)) for y in range(0, height, band_rows)]


def apply_displacement(
    design: np.ndarray,
    displacement_map: np.ndarray,
    strength: float,
    executor: Optional[Executor] = None,
    band_rows: int = DEFAULT_BAND_ROWS,
) -> np.ndarray:
    """
    Warp an RGBA design with a grayscale displacement map.

    The map is resampled to the design size first if needed. `strength` is the
    maximum shift in pixels (half of it in each direction); 5-15 is typical.
    """
    height, width = design.shape[:2]
    if height == 0 or width == 0 or strength == 0:
        return design.copy()

    disp = resize_grayscale(to_grayscale(displacement_map), (width, height))

    bands = _bands(height, band_rows)
    if executor is None or len(bands) == 1:
        rows = [_displace_rows(design, disp, strength, y0, y1) for y0, y1 in bands]
    else:
        # map() yields in submission order, so the stitch order never depends on scheduling
        rows = list(executor.map(lambda band: _displace_rows(design, disp, strength, band[0], band[1]), bands))

    return np.concatenate(rows, axis=0)


def apply_opacity(image: np.ndarray, opacity: int) -> np.ndarray:
    if opacity >= 255:
        return image
    out = image.copy()
    out[..., 3] = (image[..., 3].astype(np.float64) * (opacity / 255.0)).astype(np.uint8)
    return out
