# app/domain/compositor.py
import asyncio
import base64
import os
import time
from concurrent.futures import Executor
from dataclasses import dataclass, field
from typing import Optional, Protocol

import psutil

from app.config.log import get_logger
from app.domain.placement import PlacementSpec
from app.domain.template_registry import TemplateAsset, TemplateRegistry
from app.infrastructure.cv import image_process
from app.infrastructure.cv.blending import composite
from app.infrastructure.cv.displacement import DEFAULT_BAND_ROWS, apply_displacement, apply_opacity

logger = get_logger(__name__)


class Fetcher(Protocol):
    async def fetch(self, url: str) -> bytes: ...


@dataclass(frozen=True)
class MockupRequest:
    design_url: str
    template_id: str
    placement: PlacementSpec = field(default_factory=PlacementSpec.default)
    displacement_strength: Optional[float] = None  # None = template default


@dataclass(frozen=True)
class MockupResult:
    image_bytes: bytes
    width: int
    height: int
    url: str
    template_id: str = ""
    generation_time_ms: int = 0


def _memory_mb() -> Optional[float]:
    try:
        return psutil.Process(os.getpid()).memory_info().rss / 1024 / 1024
    except psutil.Error as e:
        logger.warning(f"Could not get memory info: {e}")
        return None


class Compositor:
    """
    Runs the mockup pipeline: fetch -> decode -> matte -> resize -> displace
    -> position -> blend -> encode.

    Only the fetch waits on the network; everything after it is CPU work and is
    handed to `cpu_executor`. Displacement bands go to `displacement_executor`,
    a separate pool, because they are submitted from inside a CPU task.
    """

    def __init__(
        self,
        registry: TemplateRegistry,
        fetcher: Fetcher,
        cpu_executor: Optional[Executor] = None,
        displacement_executor: Optional[Executor] = None,
        band_rows: int = DEFAULT_BAND_ROWS,
    ):
        self.registry = registry
        self.fetcher = fetcher
        self.cpu_executor = cpu_executor
        self.displacement_executor = displacement_executor
        self.band_rows = band_rows

    async def generate(self, request: MockupRequest) -> MockupResult:
        start = time.perf_counter()
        logger.info(f"=== START mockup: template={request.template_id} design={request.design_url[:80]} ===")

        # Cheap checks first, before any network or pixel work
        template = self.registry.require(request.template_id)
        request.placement.validate()

        strength = request.displacement_strength
        if strength is None:
            strength = template.metadata.displacement.strength_default

        design_bytes = await self.fetcher.fetch(request.design_url)
        logger.info(f"Stage 1/3: fetched {len(design_bytes)} bytes in {time.perf_counter() - start:.2f}s")

        loop = asyncio.get_running_loop()
        png_bytes, width, height = await loop.run_in_executor(
            self.cpu_executor, self.render, template, request.placement, design_bytes, strength
        )

        elapsed_ms = int((time.perf_counter() - start) * 1000)
        memory_mb = _memory_mb()
        logger.info(
            f"=== COMPLETED mockup: template={request.template_id} {width}x{height} "
            f"{len(png_bytes)} bytes in {elapsed_ms}ms"
            + (f", memory {memory_mb:.1f}MB" if memory_mb is not None else "")
            + " ==="
        )
        return MockupResult(
            image_bytes=png_bytes,
            width=width,
            height=height,
            url="data:image/png;base64," + base64.b64encode(png_bytes).decode("ascii"),
            template_id=request.template_id,
            generation_time_ms=elapsed_ms,
        )

    def render(self, template: TemplateAsset, placement: PlacementSpec, design_bytes: bytes, strength: float):
        """Blocking part of the pipeline. Returns (png_bytes, width, height)."""
        stage_start = time.perf_counter()

        design = image_process.decode_rgba(design_bytes)
        design = image_process.remove_white_background(design)
        design = image_process.resize_rgba(design, placement.design_dimensions())
        logger.info(
            f"Stage 2/3: decoded, matted and resized design to {design.shape[1]}x{design.shape[0]} "
            f"in {time.perf_counter() - stage_start:.2f}s"
        )

        meta = template.metadata
        if template.displacement_map is not None and meta.displacement.enabled:
            disp_start = time.perf_counter()
            design = apply_displacement(
                design,
                template.displacement_map,
                strength,
                executor=self.displacement_executor,
                band_rows=self.band_rows,
            )
            logger.info(f"Displacement applied (strength={strength}) in {time.perf_counter() - disp_start:.2f}s")
        else:
            logger.info(f"Displacement skipped for template {meta.id}")

        rel_x, rel_y = placement.absolute_position()
        position = (rel_x + meta.print_area.x, rel_y + meta.print_area.y)

        design = apply_opacity(design, meta.default_opacity)
        merged = composite(template.base_image, design, position, meta.blend_mode)
        png_bytes = image_process.encode_png(merged)
        logger.info(
            f"Stage 3/3: composited at {position} with blend={meta.blend_mode.value} "
            f"in {time.perf_counter() - stage_start:.2f}s total"
        )
        return png_bytes, merged.shape[1], merged.shape[0]
