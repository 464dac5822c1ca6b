# app/domain/catalog.py
from dataclasses import dataclass
from enum import Enum


class ProductKind(str, Enum):
    TSHIRT = "tshirt"
    HOODIE = "hoodie"
    TANK_TOP = "tank_top"
    LONG_SLEEVE = "long_sleeve"
    SWEATSHIRT = "sweatshirt"
    MUG = "mug"
    POSTER = "poster"
    CANVAS = "canvas"
    PHONE_CASE = "phone_case"
    BAG = "bag"
    TOTE_BAG = "tote_bag"
    HAT = "hat"
    CAP = "cap"
    BEANIE = "beanie"
    STICKER = "sticker"
    OTHER = "other"


# First match wins, so "tote bag" is a tote and "beanie cap" a beanie.
_KEYWORDS = [
    (("t-shirt", "tshirt", "tee"), ProductKind.TSHIRT),
    (("hoodie", "hooded"), ProductKind.HOODIE),
    (("tank",), ProductKind.TANK_TOP),
    (("long sleeve", "longsleeve", "long_sleeve"), ProductKind.LONG_SLEEVE),
    (("sweatshirt", "crew neck"), ProductKind.SWEATSHIRT),
    (("mug", "cup"), ProductKind.MUG),
    (("poster", "print"), ProductKind.POSTER),
    (("canvas",), ProductKind.CANVAS),
    (("phone", "case"), ProductKind.PHONE_CASE),
    (("tote",), ProductKind.TOTE_BAG),
    (("bag", "backpack"), ProductKind.BAG),
    (("beanie",), ProductKind.BEANIE),
    (("cap",), ProductKind.CAP),
    (("hat",), ProductKind.HAT),
    (("sticker",), ProductKind.STICKER),
]

_CATEGORY_SLUGS = {
    ProductKind.TSHIRT: "t-shirts",
    ProductKind.HOODIE: "hoodies",
    ProductKind.SWEATSHIRT: "hoodies",
    ProductKind.TANK_TOP: "tank-tops",
    ProductKind.LONG_SLEEVE: "long-sleeves",
    ProductKind.MUG: "mugs",
    ProductKind.POSTER: "posters",
    ProductKind.CANVAS: "posters",
    ProductKind.PHONE_CASE: "phone-cases",
    ProductKind.BAG: "bags",
    ProductKind.TOTE_BAG: "bags",
    ProductKind.HAT: "hats",
    ProductKind.CAP: "hats",
    ProductKind.BEANIE: "hats",
    ProductKind.STICKER: "accessories",
    ProductKind.OTHER: "accessories",
}


@dataclass(frozen=True)
class ProductType:
    """A known product kind, or OTHER carrying the text it was parsed from."""

    kind: ProductKind
    raw: str = ""

    @classmethod
    def parse(cls, text: str) -> "ProductType":
        lower = (text or "").lower()
        for keywords, kind in _KEYWORDS:
            if any(k in lower for k in keywords):
                return cls(kind, text)
        return cls(ProductKind.OTHER, text)

    @property
    def is_other(self) -> bool:
        return self.kind is ProductKind.OTHER

    @property
    def category_slug(self) -> str:
        return _CATEGORY_SLUGS[self.kind]

    def __str__(self) -> str:
        return self.raw if self.is_other else self.kind.value


class PlacementKind(str, Enum):
    FRONT = "front"
    BACK = "back"
    SLEEVE_LEFT = "sleeve_left"
    SLEEVE_RIGHT = "sleeve_right"
    POCKET = "pocket"
    HOOD = "hood"
    FULL_WRAP = "full_wrap"
    ALL_OVER = "all_over"
    OTHER = "other"


# Every word of a rule must appear; first matching rule wins.
_PLACEMENT_RULES = [
    (("front",), PlacementKind.FRONT),
    (("back",), PlacementKind.BACK),
    (("left", "sleeve"), PlacementKind.SLEEVE_LEFT),
    (("right", "sleeve"), PlacementKind.SLEEVE_RIGHT),
    (("pocket",), PlacementKind.POCKET),
    (("hood",), PlacementKind.HOOD),
    (("wrap",), PlacementKind.FULL_WRAP),
    (("all", "over"), PlacementKind.ALL_OVER),
]


@dataclass(frozen=True)
class PrintPlacement:
    """Where on the product a print goes, or OTHER carrying the text it was parsed from."""

    kind: PlacementKind
    raw: str = ""

    @classmethod
    def parse(cls, text: str) -> "PrintPlacement":
        lower = (text or "").lower()
        for words, kind in _PLACEMENT_RULES:
            if all(w in lower for w in words):
                return cls(kind, text)
        return cls(PlacementKind.OTHER, text)

    @property
    def is_other(self) -> bool:
        return self.kind is PlacementKind.OTHER

    def as_str(self) -> str:
        return self.raw if self.is_other else self.kind.value

    def __str__(self) -> str:
        return self.as_str()
