# app/domain/errors.py
from typing import Any, Dict, Optional


class MockupError(Exception):
    """Base class for every failure the mockup engine reports to callers."""

    code = "MOCKUP_ERROR"
    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}


class FetchFailed(MockupError):
    code = "FETCH_FAILED"
    status_code = 502

    def __init__(self, url: str, reason: str, status: Optional[int] = None):
        super().__init__(
            f"Failed to fetch design image: {reason}",
            {"url": url, "reason": reason, "status": status},
        )
        self.url = url
        self.reason = reason
        self.status = status


class DecodeFailed(MockupError):
    code = "DECODE_FAILED"
    status_code = 422

    def __init__(self, reason: str):
        super().__init__(f"Failed to decode image: {reason}", {"reason": reason})
        self.reason = reason


class TemplateNotFound(MockupError):
    code = "TEMPLATE_NOT_FOUND"
    status_code = 404

    def __init__(self, template_id: str):
        super().__init__(f"Template '{template_id}' does not exist", {"template_id": template_id})
        self.template_id = template_id


class InvalidPlacement(MockupError):
    code = "INVALID_PLACEMENT"
    status_code = 400


class InvalidScale(InvalidPlacement):
    code = "INVALID_SCALE"

    def __init__(self, scale: float):
        super().__init__(f"Scale must be between 0.1 and 1.0, got {scale}", {"scale": scale})
        self.scale = scale


class OutOfBoundsHorizontal(InvalidPlacement):
    code = "OUT_OF_BOUNDS_HORIZONTAL"

    def __init__(self, left: int, right: int, print_width: int):
        super().__init__(
            f"Design extends outside print area: left={left}, right={right}, print_width={print_width}",
            {"left": left, "right": right, "print_width": print_width},
        )
        self.left = left
        self.right = right
        self.print_width = print_width


class OutOfBoundsVertical(InvalidPlacement):
    code = "OUT_OF_BOUNDS_VERTICAL"

    def __init__(self, top: int, bottom: int, print_height: int):
        super().__init__(
            f"Design extends outside print area: top={top}, bottom={bottom}, print_height={print_height}",
            {"top": top, "bottom": bottom, "print_height": print_height},
        )
        self.top = top
        self.bottom = bottom
        self.print_height = print_height


class MetadataLoad(MockupError):
    code = "METADATA_LOAD"

    def __init__(self, entry: str, reason: str):
        super().__init__(f"Failed to load template '{entry}': {reason}", {"entry": entry, "reason": reason})
        self.entry = entry
        self.reason = reason


class DesignTooSmall(InvalidPlacement):
    code = "DESIGN_TOO_SMALL"

    def __init__(self, width: int, height: int):
        super().__init__(
            f"Design would be {width}x{height} px at this scale; both sides must be at least 1 px",
            {"width": width, "height": height},
        )
        self.width = width
        self.height = height


class UploadFailed(MockupError):
    code = "UPLOAD_FAILED"
    status_code = 502

    def __init__(self, reason: str):
        super().__init__(f"Failed to publish mockup: {reason}", {"reason": reason})
        self.reason = reason
