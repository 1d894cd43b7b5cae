import math
import uuid
from typing import Any, Dict, Optional, Sequence

# Presentation categories, keyed by what tags[0] contains.
# Order matters: the first matching substring wins.
CATEGORY_KEYWORDS = (
    ("problem", ("problem",)),
    ("market", ("market",)),
    ("tech", ("tech",)),
    ("gtm", ("gtm", "growth")),
    ("scale", ("scale",)),
    ("execution", ("execution",)),
    ("vision", ("vision",)),
)

CATEGORIES = tuple(name for name, _ in CATEGORY_KEYWORDS) + ("default",)

# Base colour per category plus the border/fill opacities used on the canvas
CATEGORY_COLORS: Dict[str, Dict[str, Any]] = {
    "problem": {"color": "#ff7d7d", "border": 0.22, "fill": 0.06},
    "market": {"color": "#ffd78c", "border": 0.22, "fill": 0.06},
    "tech": {"color": "#8bf3ff", "border": 0.22, "fill": 0.06},
    "gtm": {"color": "#ceff99", "border": 0.20, "fill": 0.06},
    "scale": {"color": "#a5d2ff", "border": 0.22, "fill": 0.06},
    "execution": {"color": "#ffffff", "border": 0.16, "fill": 0.05},
    "vision": {"color": "#d2aaff", "border": 0.20, "fill": 0.06},
    "default": {"color": "#ffffff", "border": 0.12, "fill": 0.04},
}


def new_id() -> str:
    """Random identifier for nodes and edges created without a preferred id."""
    return uuid.uuid4().hex[:12]


def is_number(value: Any) -> bool:
    """True for finite ints/floats; bools are not numbers here."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        return False


def clamp_number(value: float, minimum: float, maximum: float) -> float:
    """Clamp value into [minimum, maximum]; NaN collapses to minimum."""
    if isinstance(value, float) and math.isnan(value):
        return minimum
    return min(maximum, max(minimum, value))


def category_from_tags(tags: Optional[Sequence[str]]) -> str:
    """
    Map a node's tag list to its presentation category.

    Only tags[0] is consulted, case-insensitively, by substring.
    """
    first = (tags[0] if tags else "").lower()
    for name, keywords in CATEGORY_KEYWORDS:
        if any(k in first for k in keywords):
            return name
    return "default"


def hex_to_rgba(hex_color: str, opacity: float) -> str:
    """Converts hex color and opacity to rgba string."""
    hex_color = hex_color.lstrip('#')
    r, g, b = tuple(int(hex_color[i:i+2], 16) for i in (0, 2, 4))
    return f'rgba({r},{g},{b},{opacity})'


def lighten_hex(hex_color: str, amount: float = 0.5) -> str:
    """Lightens a hex color by mixing it with white."""
    hex_color = hex_color.lstrip('#')
    r, g, b = tuple(int(hex_color[i:i+2], 16) for i in (0, 2, 4))
    r = int(r + (255 - r) * amount)
    g = int(g + (255 - g) * amount)
    b = int(b + (255 - b) * amount)
    return '#{:02x}{:02x}{:02x}'.format(r, g, b)


def category_style(tags: Optional[Sequence[str]], selected: bool = False) -> Dict[str, str]:
    """
    Stroke/fill/text colours for a node, derived purely from its tags.
    Selected nodes get a stronger border.
    """
    palette = CATEGORY_COLORS[category_from_tags(tags)]
    border_opacity = 0.7 if selected else palette["border"]
    return {
        "stroke": hex_to_rgba(palette["color"], border_opacity),
        "fill": hex_to_rgba(palette["color"], palette["fill"]),
        "text": lighten_hex(palette["color"], 0.6),
    }
