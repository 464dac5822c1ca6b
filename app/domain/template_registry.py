# app/domain/template_registry.py
import asyncio
import os
import threading
import time
from concurrent.futures import Executor
from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterable, Iterator, List, Mapping, Optional, Protocol, Tuple

import numpy as np
from pydantic import BaseModel, Field, ValidationError, field_validator

from app.config.log import get_logger
from app.domain.catalog import PrintPlacement, ProductType
from app.domain.errors import MetadataLoad, TemplateNotFound
from app.infrastructure.cv.blending import BlendMode
from app.infrastructure.cv.image_process import decode_grayscale, decode_rgba

logger = get_logger(__name__)

METADATA_FILE = "metadata.json"
BASE_IMAGE_FILES = ("base.png", "base.jpg")
DISPLACEMENT_FILES = ("displacement.png", "displacement.jpg")


# --- METADATA ---

class TemplateDimensions(BaseModel):
    width: int
    height: int

class PrintArea(BaseModel):
    x: int
    y: int
    width: int
    height: int

class AnchorPoint(BaseModel):
    x: int
    y: int

class DisplacementConfig(BaseModel):
    enabled: bool = True
    strength_default: float = 10.0
    strength_range: Tuple[float, float] = (0.0, 30.0)

class TemplateMetadata(BaseModel):
    id: str
    version: int = 1
    category: str
    color: str
    color_hex: Optional[str] = None
    placement: str
    gender: str
    dimensions: TemplateDimensions
    print_area: PrintArea
    anchor_point: AnchorPoint
    displacement: DisplacementConfig = Field(default_factory=DisplacementConfig)
    blend_mode: BlendMode = BlendMode.NORMAL
    default_opacity: int = Field(default=255, ge=0, le=255)

    @field_validator("blend_mode", mode="before")
    @classmethod
    def _known_blend_mode(cls, value):
        mode = BlendMode.parse(value)
        if isinstance(value, str) and mode.value != value.strip().lower():
            logger.warning(f"Unknown blend mode '{value}', falling back to '{mode.value}'.")
        return mode

    @property
    def product_type(self) -> ProductType:
        return ProductType.parse(self.category)

    @property
    def placement_type(self) -> PrintPlacement:
        return PrintPlacement.parse(self.placement)


@dataclass(frozen=True)
class TemplateAsset:
    metadata: TemplateMetadata
    base_image: np.ndarray                    # (H, W, 4) RGBA, read-only
    displacement_map: Optional[np.ndarray]    # (H, W) grayscale, read-only

    @property
    def id(self) -> str:
        return self.metadata.id

    @property
    def has_displacement(self) -> bool:
        return self.displacement_map is not None

    @property
    def size(self) -> Tuple[int, int]:
        return self.base_image.shape[1], self.base_image.shape[0]

    def summary(self) -> dict:
        meta = self.metadata
        return {
            "id": meta.id,
            "version": meta.version,
            "category": meta.category,
            "product_type": str(meta.product_type),
            "category_slug": meta.product_type.category_slug,
            "color": meta.color,
            "color_hex": meta.color_hex,
            "placement": meta.placement,
            "placement_type": str(meta.placement_type),
            "gender": meta.gender,
            "dimensions": {"width": self.size[0], "height": self.size[1]},
            "print_area": meta.print_area.model_dump(),
            "blend_mode": meta.blend_mode.value,
            "default_opacity": meta.default_opacity,
            "displacement": {
                "available": self.has_displacement,
                "enabled": meta.displacement.enabled,
                "strength_default": meta.displacement.strength_default,
                "strength_range": list(meta.displacement.strength_range),
            },
        }


# --- SOURCES ---

class TemplateEntry(Protocol):
    name: str

    def read(self, filename: str) -> Optional[bytes]: ...


class TemplateSource(Protocol):
    def entries(self) -> Iterable[TemplateEntry]: ...


class DirectoryEntry:
    def __init__(self, path: str):
        self.path = path
        self.name = os.path.basename(os.path.normpath(path))

    def read(self, filename: str) -> Optional[bytes]:
        full = os.path.join(self.path, filename)
        if not os.path.isfile(full):
            return None
        with open(full, "rb") as f:
            return f.read()


class DirectoryTemplateSource:
    """One sub-directory per template, each holding metadata.json + images."""

    def __init__(self, root: str):
        self.root = root

    def entries(self) -> Iterator[DirectoryEntry]:
        if not os.path.isdir(self.root):
            logger.warning(f"Templates directory does not exist: {self.root}")
            return
        for name in sorted(os.listdir(self.root)):
            path = os.path.join(self.root, name)
            if os.path.isdir(path) and os.path.isfile(os.path.join(path, METADATA_FILE)):
                yield DirectoryEntry(path)


def _read_first(entry: TemplateEntry, candidates: Tuple[str, ...]) -> Optional[bytes]:
    for filename in candidates:
        data = entry.read(filename)
        if data is not None:
            return data
    return None


def _frozen(arr: np.ndarray) -> np.ndarray:
    arr.setflags(write=False)
    return arr


def load_template(entry: TemplateEntry) -> TemplateAsset:
    raw = entry.read(METADATA_FILE)
    if raw is None:
        raise MetadataLoad(entry.name, f"{METADATA_FILE} not found")
    try:
        metadata = TemplateMetadata.model_validate_json(raw)
    except ValidationError as e:
        raise MetadataLoad(entry.name, f"invalid {METADATA_FILE}: {e.error_count()} error(s): {e.errors()[0]['msg']}") from e

    base_bytes = _read_first(entry, BASE_IMAGE_FILES)
    if base_bytes is None:
        raise MetadataLoad(entry.name, "base image not found")
    base_image = decode_rgba(base_bytes)

    displacement_map = None
    disp_bytes = _read_first(entry, DISPLACEMENT_FILES)
    if disp_bytes is not None:
        displacement_map = decode_grayscale(disp_bytes)
        if displacement_map is None:
            raise MetadataLoad(entry.name, "displacement map could not be decoded")
    else:
        logger.warning(f"No displacement map found for template {metadata.id}")

    logger.info(
        f"Loaded template {metadata.id} ({base_image.shape[1]}x{base_image.shape[0]}, "
        f"displacement={'yes' if displacement_map is not None else 'no'})"
    )
    return TemplateAsset(
        metadata=metadata,
        base_image=_frozen(base_image),
        displacement_map=_frozen(displacement_map) if displacement_map is not None else None,
    )


# --- REGISTRY ---

class TemplateRegistry:
    """
    Process-wide cache of immutable template assets.

    Readers grab the current snapshot without locking; a reload builds a
    complete new mapping first and then swaps the reference in one step, so a
    reader sees either the whole old set or the whole new one.
    """

    def __init__(self):
        self._snapshot: Mapping[str, TemplateAsset] = MappingProxyType({})
        self._reload_lock = threading.Lock()

    def load_all(self, source: TemplateSource) -> int:
        start = time.perf_counter()
        loaded = {}
        failed = 0
        for entry in source.entries():
            try:
                asset = load_template(entry)
            except Exception as e:
                failed += 1
                logger.warning(f"Skipping template entry '{entry.name}': {e}")
                continue
            if asset.id in loaded:
                logger.warning(f"Duplicate template id '{asset.id}' in entry '{entry.name}', replacing earlier one.")
            loaded[asset.id] = asset

        with self._reload_lock:
            self._snapshot = MappingProxyType(loaded)

        logger.info(
            f"Template registry loaded {len(loaded)} template(s), skipped {failed} "
            f"in {time.perf_counter() - start:.2f}s."
        )
        return len(loaded)

    async def reload(self, source: TemplateSource, executor: Optional[Executor] = None) -> int:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(executor, self.load_all, source)

    def snapshot(self) -> Mapping[str, TemplateAsset]:
        return self._snapshot

    def get(self, template_id: str) -> Optional[TemplateAsset]:
        return self._snapshot.get(template_id)

    def require(self, template_id: str) -> TemplateAsset:
        asset = self.get(template_id)
        if asset is None:
            raise TemplateNotFound(template_id)
        return asset

    def count(self) -> int:
        return len(self._snapshot)

    def list_ids(self) -> List[str]:
        return sorted(self._snapshot.keys())
