# app/domain/placement.py
"""
Placement specification for positioning a design inside a template's print area.

Positions are center-anchored: offsets are measured from the middle of the
print area, so one spec means the same thing on a low-resolution preview
(display space) and on the print file (print space). Converting between the
two spaces truncates offsets, so a round trip may drift by one pixel.
"""
from enum import Enum
from typing import Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.domain.errors import DesignTooSmall, InvalidScale, OutOfBoundsHorizontal, OutOfBoundsVertical

# Preview mockups
DISPLAY_TEMPLATE_WIDTH = 1000
DISPLAY_TEMPLATE_HEIGHT = 1400

# Print files
PRINT_TEMPLATE_WIDTH = 1800
PRINT_TEMPLATE_HEIGHT = 2400

MIN_SCALE = 0.1
MAX_SCALE = 1.0

# Largest print area side accepted from callers
MAX_PRINT_AREA_SIDE = 10000


class CoordinateSpace(str, Enum):
    DISPLAY = "display"
    PRINT = "print"


class PlacementType(str, Enum):
    FRONT = "front"
    BACK = "back"
    SLEEVE_LEFT = "sleeve_left"
    SLEEVE_RIGHT = "sleeve_right"

    @classmethod
    def _missing_(cls, value):
        # "sleeve-left", "Sleeve Left" and friends
        if isinstance(value, str):
            normalized = value.strip().lower().replace("-", "_").replace(" ", "_")
            for member in cls:
                if member.value == normalized:
                    return member
        return None


class PlacementSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    scale: float
    offset_x: int = 0
    offset_y: int = 0  # negative = up
    placement: PlacementType = PlacementType.FRONT
    print_area_width: int = Field(default=PRINT_TEMPLATE_WIDTH, gt=0, le=MAX_PRINT_AREA_SIDE)
    print_area_height: int = Field(default=PRINT_TEMPLATE_HEIGHT, gt=0, le=MAX_PRINT_AREA_SIDE)
    coordinate_space: CoordinateSpace = CoordinateSpace.PRINT

    @field_validator("placement", mode="before")
    @classmethod
    def _normalize_placement(cls, value):
        if isinstance(value, str) and not isinstance(value, PlacementType):
            return PlacementType(value)
        return value

    @classmethod
    def default(cls) -> "PlacementSpec":
        # Slightly above center, where a chest print usually sits
        return cls(scale=0.5, offset_x=0, offset_y=-50)

    def validate(self) -> None:  # type: ignore[override]
        # Shadows pydantic's deprecated BaseModel.validate classmethod.
        if not (MIN_SCALE <= self.scale <= MAX_SCALE):
            raise InvalidScale(self.scale)

        design_w, design_h = self.design_dimensions()
        if design_w < 1 or design_h < 1:
            raise DesignTooSmall(design_w, design_h)
        abs_x, abs_y = self.absolute_position()

        left, right = abs_x, abs_x + design_w
        if left < 0 or right > self.print_area_width:
            raise OutOfBoundsHorizontal(left, right, self.print_area_width)

        top, bottom = abs_y, abs_y + design_h
        if top < 0 or bottom > self.print_area_height:
            raise OutOfBoundsVertical(top, bottom, self.print_area_height)

    def design_dimensions(self) -> Tuple[int, int]:
        return (
            int(round(self.print_area_width * self.scale)),
            int(round(self.print_area_height * self.scale)),
        )

    def absolute_position(self) -> Tuple[int, int]:
        """Top-left corner of the design, relative to the print area origin."""
        design_w, design_h = self.design_dimensions()
        center_x = self.print_area_width // 2
        center_y = self.print_area_height // 2
        return (
            center_x + self.offset_x - design_w // 2,
            center_y + self.offset_y - design_h // 2,
        )

    def to_display_space(self) -> "PlacementSpec":
        if self.coordinate_space == CoordinateSpace.DISPLAY:
            return self
        factor = DISPLAY_TEMPLATE_WIDTH / PRINT_TEMPLATE_WIDTH
        return self.model_copy(update={
            "offset_x": int(self.offset_x * factor),
            "offset_y": int(self.offset_y * factor),
            "print_area_width": DISPLAY_TEMPLATE_WIDTH,
            "print_area_height": DISPLAY_TEMPLATE_HEIGHT,
            "coordinate_space": CoordinateSpace.DISPLAY,
        })

    def to_print_space(self) -> "PlacementSpec":
        if self.coordinate_space == CoordinateSpace.PRINT:
            return self
        factor = PRINT_TEMPLATE_WIDTH / DISPLAY_TEMPLATE_WIDTH
        return self.model_copy(update={
            "offset_x": int(self.offset_x * factor),
            "offset_y": int(self.offset_y * factor),
            "print_area_width": PRINT_TEMPLATE_WIDTH,
            "print_area_height": PRINT_TEMPLATE_HEIGHT,
            "coordinate_space": CoordinateSpace.PRINT,
        })
