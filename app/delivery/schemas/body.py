from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional

from app.domain.placement import PlacementSpec

class GenerateOptions(BaseModel):
    # Template default is used when omitted; 0-30 is the useful range
    displacement_strength: Optional[float] = Field(default=None, ge=0)
    upload: bool = False                   # publish to Cloudinary instead of returning a data URL

class GenerateRequest(BaseModel):
    design_url: str
    template_id: str                       # e.g. "white_male_front"
    placement: PlacementSpec = Field(default_factory=PlacementSpec.default)
    options: GenerateOptions = Field(default_factory=GenerateOptions)

class Dimensions(BaseModel):
    width: int
    height: int

class GenerateMetadata(BaseModel):
    generation_time_ms: int
    template_used: str
    dimensions: Dimensions

class GenerateResponse(BaseModel):
    success: bool = True
    mockup_url: str
    metadata: GenerateMetadata

class TemplatesListResponse(BaseModel):
    success: bool = True
    data: List[Dict[str, Any]]
    count: int

class TemplateResponse(BaseModel):
    success: bool = True
    data: Dict[str, Any]

class ReloadResponse(BaseModel):
    success: bool = True
    count: int
