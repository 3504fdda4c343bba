"""Page geometry helpers. All values are PDF points (1/72 inch)."""
from typing import Dict, Tuple

from transform_factory.core.errors import InvalidInputError

PAGE_SIZES: Dict[str, Tuple[float, float]] = {
    "a3": (841.89, 1190.55),
    "a4": (595.28, 841.89),
    "a5": (419.53, 595.28),
    "letter": (612.0, 792.0),
    "legal": (612.0, 1008.0),
    "tabloid": (792.0, 1224.0),
}

NUMBER_POSITIONS = (
    "top-left", "top-center", "top-right",
    "bottom-left", "bottom-center", "bottom-right",
)


def page_size(name: str, orientation: str = "portrait") -> Tuple[float, float]:
    key = (name or "a4").lower()
    if key not in PAGE_SIZES:
        raise InvalidInputError(
            f"Unsupported page size: {name}. Supported: {', '.join(PAGE_SIZES)}"
        )
    width, height = PAGE_SIZES[key]
    if (orientation or "portrait").lower() == "landscape":
        return height, width
    return width, height


def fit_rect(
    img_w: float, img_h: float, box_w: float, box_h: float, margin: float = 0
) -> Tuple[float, float, float, float]:
    """Centre an image inside a box keeping its aspect ratio.

    Returns ``(x, y, width, height)`` measured from the box's lower-left
    corner. The image is scaled up or down to touch the margins.
    """
    avail_w = max(box_w - 2 * margin, 1)
    avail_h = max(box_h - 2 * margin, 1)
    scale = min(avail_w / img_w, avail_h / img_h)
    width = img_w * scale
    height = img_h * scale
    x = (box_w - width) / 2
    y = (box_h - height) / 2
    return x, y, width, height


def number_position(
    position: str, page_w: float, page_h: float, text_w: float, font_size: float
) -> Tuple[float, float]:
    """Baseline origin (bottom-left coordinates) for a page number label."""
    position = (position or "bottom-center").lower()
    if position not in NUMBER_POSITIONS:
        raise InvalidInputError(
            f"Invalid position: {position}. Supported: {', '.join(NUMBER_POSITIONS)}"
        )
    vertical, horizontal = position.split("-")
    margin = font_size

    if horizontal == "left":
        x = margin
    elif horizontal == "right":
        x = page_w - text_w - margin
    else:
        x = (page_w - text_w) / 2

    if vertical == "top":
        y = page_h - margin - font_size
    else:
        y = margin
    return x, y


def format_size(size: int) -> str:
    if size < 1024:
        return f"{size} bytes"
    if size < 1024 * 1024:
        return f"{size / 1024:.2f} KB"
    if size < 1024 * 1024 * 1024:
        return f"{size / (1024 * 1024):.2f} MB"
    return f"{size / (1024 * 1024 * 1024):.2f} GB"
