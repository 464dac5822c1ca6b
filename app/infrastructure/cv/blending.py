# app/infrastructure/cv/blending.py
from enum import Enum
from typing import Optional, Tuple

import numpy as np


class BlendMode(str, Enum):
    NORMAL = "normal"
    MULTIPLY = "multiply"
    SCREEN = "screen"
    OVERLAY = "overlay"

    @classmethod
    def parse(cls, value: Optional[str]) -> "BlendMode":
        try:
            return cls((value or "normal").strip().lower())
        except ValueError:
            return cls.NORMAL


def _mix(blended: np.ndarray, base: np.ndarray, alpha: np.ndarray) -> np.ndarray:
    return blended * alpha + base * (1.0 - alpha)


def blend_pixels(base: np.ndarray, overlay: np.ndarray, mode: BlendMode) -> np.ndarray:
    """
    Blend RGB(A) overlay pixels onto RGB base pixels of the same shape.

    `base` is (..., 3) and `overlay` is (..., 4); the overlay's alpha weighs the
    blended colour against the base. Returns uint8 RGB.
    """
    alpha = overlay[..., 3:4].astype(np.float64) / 255.0
    b = base[..., :3].astype(np.float64)
    o = overlay[..., :3].astype(np.float64)

    if mode is BlendMode.MULTIPLY:
        multiplied = (base[..., :3].astype(np.uint32) * overlay[..., :3].astype(np.uint32)) // 255
        out = _mix(multiplied.astype(np.float64), b, alpha)
    elif mode is BlendMode.SCREEN:
        inv = ((255 - base[..., :3].astype(np.uint32)) * (255 - overlay[..., :3].astype(np.uint32))) // 255
        out = _mix((255 - inv).astype(np.float64), b, alpha)
    elif mode is BlendMode.OVERLAY:
        bn = b / 255.0
        on = o / 255.0
        overlaid = np.where(bn < 0.5, 2.0 * bn * on, 1.0 - 2.0 * (1.0 - bn) * (1.0 - on))
        out = _mix(overlaid, bn, alpha) * 255.0
    else:
        out = _mix(o, b, alpha)

    return np.clip(out, 0, 255).astype(np.uint8)


def composite(
    base: np.ndarray,
    design: np.ndarray,
    position: Tuple[int, int],
    mode: BlendMode = BlendMode.NORMAL,
) -> np.ndarray:
    """
    Paste an RGBA design onto a copy of an RGBA base at `position` (top-left).

    Only the part of the design that overlaps the base is blended, and only
    where the design has non-zero alpha. The result is fully opaque.
    """
    out = base.copy()
    out[..., 3] = 255

    base_h, base_w = base.shape[:2]
    design_h, design_w = design.shape[:2]
    x, y = position

    # Intersection in base coordinates
    bx0, by0 = max(0, x), max(0, y)
    bx1, by1 = min(base_w, x + design_w), min(base_h, y + design_h)
    if bx0 >= bx1 or by0 >= by1:
        return out

    src = design[by0 - y:by1 - y, bx0 - x:bx1 - x]
    dst = out[by0:by1, bx0:bx1]

    mask = src[..., 3] > 0
    if not mask.any():
        return out

    dst[..., :3][mask] = blend_pixels(dst[mask], src[mask], mode)
    return out
