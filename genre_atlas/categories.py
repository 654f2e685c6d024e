"""
The fixed set of semantic categories ("pillars") every genre is mapped onto.

Each category owns an anchor on the unit circle and an anchor color. Anchors
are evenly spaced, starting at the top and going clockwise in screen space
(y grows downward), so Pop sits at (0, -1).
"""
from dataclasses import dataclass
from typing import Dict, Tuple
import math

POP = "Pop"
ROCK = "Rock"
HIP_HOP = "R&B/Hip-Hop"
ELECTRONIC = "Electronic"
JAZZ = "Jazz/Blues"
FOLK = "Folk/Country"
CLASSICAL = "Classical"

CATEGORIES: Tuple[str, ...] = (POP, ROCK, HIP_HOP, ELECTRONIC, JAZZ, FOLK, CLASSICAL)

CATEGORY_COLORS: Dict[str, str] = {
    POP: "#FFD700",
    ROCK: "#FF0000",
    HIP_HOP: "#FF00FF",
    ELECTRONIC: "#00FFFF",
    JAZZ: "#0000FF",
    FOLK: "#00FF00",
    CLASSICAL: "#FFFFFF",
}


def hex_to_rgb(hex_color: str) -> Tuple[int, int, int]:
    value = hex_color.lstrip("#")
    if len(value) != 6:
        raise ValueError(f"Expected a #RRGGBB color, got {hex_color!r}")
    return (int(value[0:2], 16), int(value[2:4], 16), int(value[4:6], 16))


def rgb_to_hex(rgb: Tuple[int, int, int]) -> str:
    return "#{:02X}{:02X}{:02X}".format(*rgb)


@dataclass(frozen=True)
class CategoryAnchor:
    name: str
    x: float
    y: float
    color: Tuple[int, int, int]

    @property
    def angle(self) -> float:
        """Angle in radians, normalized to [0, 2*pi)."""
        a = math.atan2(self.y, self.x)
        return a + 2 * math.pi if a < 0 else a

    @property
    def hex(self) -> str:
        return rgb_to_hex(self.color)


def _build_anchors() -> Dict[str, CategoryAnchor]:
    n = len(CATEGORIES)
    anchors = {}
    for i, name in enumerate(CATEGORIES):
        theta = -math.pi / 2 + 2 * math.pi * i / n
        anchors[name] = CategoryAnchor(
            name=name,
            x=math.cos(theta),
            y=math.sin(theta),
            color=hex_to_rgb(CATEGORY_COLORS[name]),
        )
    return anchors


ANCHORS: Dict[str, CategoryAnchor] = _build_anchors()
