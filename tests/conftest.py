import io
import json
import os

import numpy as np
import pytest
from PIL import Image


def _png(array: np.ndarray) -> bytes:
    buf = io.BytesIO()
    Image.fromarray(np.ascontiguousarray(array, dtype=np.uint8)).save(buf, format="PNG")
    return buf.getvalue()


def _solid(width: int, height: int, color) -> np.ndarray:
    channels = len(color)
    arr = np.zeros((height, width, channels), dtype=np.uint8)
    arr[...] = color
    return arr


def _metadata(template_id: str, **overrides) -> dict:
    meta = {
        "id": template_id,
        "version": 1,
        "category": "Unisex T-Shirt",
        "color": "white",
        "color_hex": "#FFFFFF",
        "placement": "front",
        "gender": "unisex",
        "dimensions": {"width": 400, "height": 500},
        "print_area": {"x": 100, "y": 50, "width": 180, "height": 240},
        "anchor_point": {"x": 190, "y": 170},
        "displacement": {"enabled": True, "strength_default": 10.0, "strength_range": [0.0, 30.0]},
        "blend_mode": "normal",
        "default_opacity": 255,
    }
    meta.update(overrides)
    return meta


def _write_template(root, template_id, base=None, displacement=None, metadata=None, dirname=None, **overrides):
    path = os.path.join(str(root), dirname or template_id)
    os.makedirs(path, exist_ok=True)
    meta = metadata if metadata is not None else _metadata(template_id, **overrides)
    with open(os.path.join(path, "metadata.json"), "w") as f:
        if isinstance(meta, str):
            f.write(meta)
        else:
            json.dump(meta, f)
    if base is None:
        base = _solid(400, 500, (50, 100, 150, 255))
    with open(os.path.join(path, "base.png"), "wb") as f:
        f.write(_png(base))
    if displacement is not None:
        with open(os.path.join(path, "displacement.png"), "wb") as f:
            f.write(_png(displacement))
    return path


class StubFetcher:
    def __init__(self, payload=b"", error=None):
        self.payload = payload
        self.error = error
        self.calls = []

    async def fetch(self, url: str) -> bytes:
        self.calls.append(url)
        if self.error is not None:
            raise self.error
        return self.payload


@pytest.fixture
def png():
    return _png


@pytest.fixture
def solid():
    return _solid


@pytest.fixture
def template_metadata():
    return _metadata


@pytest.fixture
def write_template():
    return _write_template


@pytest.fixture
def stub_fetcher():
    return StubFetcher
