"""
PdfBundler - Layout Engine

Placement geometry for composing images into pages and for stamping
watermarks onto existing pages.

All coordinates use the PDF convention: points, origin at the bottom-left
corner of the page, y growing upwards.
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum

from reportlab.pdfbase import pdfmetrics

from pdfbundler.constants import (
    A4_HEIGHT_PT,
    A4_WIDTH_PT,
    GRID_CELL_FILL,
    GRID_MARGIN_PT,
    GRID_SINGLE_MAX,
    GRID_TWO_COLUMN_MAX,
    OVERLAY_EDGE_INSET,
    WATERMARK_FONT_NAME,
)
from pdfbundler.utils.exceptions import ValidationError
from pdfbundler.utils.format_utils import parse_hex_color

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Image grid placement
# ---------------------------------------------------------------------------


class ImageLayoutMode(Enum):
    """How images are distributed over pages."""

    SINGLE = "single"  # one image per page, scaled to fill it
    GRID = "grid"  # several images per page in a grid


@dataclass
class ImagePlacement:
    """Where one image lands in the composed document."""

    page_index: int
    image_index: int
    x: float
    y: float
    width: float
    height: float


@dataclass
class GridCell:
    """Bounds of a grid cell on its page."""

    x: float
    y: float
    width: float
    height: float

    def contains(self, placement: ImagePlacement, tolerance: float = 1e-6) -> bool:
        return (
            placement.x >= self.x - tolerance
            and placement.y >= self.y - tolerance
            and placement.x + placement.width <= self.x + self.width + tolerance
            and placement.y + placement.height <= self.y + self.height + tolerance
        )


def grid_for_count(count: int) -> tuple[int, int]:
    """Pick (columns, rows) for a number of images.

    One image gets a 1x1 grid, up to four use two columns, anything
    larger uses three columns. Rows grow to fit every image.
    """
    if count <= GRID_SINGLE_MAX:
        return 1, 1
    if count <= GRID_TWO_COLUMN_MAX:
        return 2, math.ceil(count / 2)
    return 3, math.ceil(count / 3)


def grid_cell(
    col: int,
    row: int,
    grid: tuple[int, int],
    page_size: tuple[float, float],
    margin: float = GRID_MARGIN_PT,
) -> GridCell:
    """Bounds of the cell at (col, row); row 0 is the top row."""
    cols, rows = grid
    page_w, page_h = page_size
    cell_w = (page_w - 2 * margin) / cols
    cell_h = (page_h - 2 * margin) / rows
    top = margin + row * cell_h
    return GridCell(
        x=margin + col * cell_w,
        y=page_h - top - cell_h,
        width=cell_w,
        height=cell_h,
    )


def layout_grid(
    image_sizes: list[tuple[int, int]],
    page_size: tuple[float, float] = (A4_WIDTH_PT, A4_HEIGHT_PT),
    *,
    margin: float = GRID_MARGIN_PT,
    grid: tuple[int, int] | None = None,
) -> list[ImagePlacement]:
    """Pack images into grid cells, left to right and top to bottom.

    Each image is scaled uniformly to 90% of its cell in the limiting
    dimension and centered in the cell. When every cell of a page is used
    the next image starts a new page at the top-left cell.

    Args:
        image_sizes: (width, height) of each image in pixels
        page_size: (width, height) of the output pages in points
        margin: Blank border around the grid
        grid: Explicit (cols, rows); chosen from the image count if omitted

    Returns:
        One ImagePlacement per image, in input order.
    """
    if not image_sizes:
        return []

    cols, rows = grid or grid_for_count(len(image_sizes))
    placements: list[ImagePlacement] = []
    page_index = 0
    row = col = 0

    for image_index, (img_w, img_h) in enumerate(image_sizes):
        if row >= rows:
            page_index += 1
            row = col = 0

        cell = grid_cell(col, row, (cols, rows), page_size, margin)
        scale = min(cell.width * GRID_CELL_FILL / img_w, cell.height * GRID_CELL_FILL / img_h)
        width = img_w * scale
        height = img_h * scale

        placements.append(
            ImagePlacement(
                page_index=page_index,
                image_index=image_index,
                x=cell.x + (cell.width - width) / 2,
                y=cell.y + (cell.height - height) / 2,
                width=width,
                height=height,
            )
        )

        col += 1
        if col >= cols:
            col = 0
            row += 1

    logger.debug(
        "Grid layout %dx%d: %d images on %d page(s)",
        cols,
        rows,
        len(image_sizes),
        page_index + 1,
    )
    return placements


def layout_single(
    image_sizes: list[tuple[int, int]],
    page_size: tuple[float, float] = (A4_WIDTH_PT, A4_HEIGHT_PT),
) -> list[ImagePlacement]:
    """Place each image alone on its own page, scaled to fit and centered."""
    page_w, page_h = page_size
    placements = []
    for index, (img_w, img_h) in enumerate(image_sizes):
        ratio = min(page_w / img_w, page_h / img_h)
        width = img_w * ratio
        height = img_h * ratio
        placements.append(
            ImagePlacement(
                page_index=index,
                image_index=index,
                x=(page_w - width) / 2,
                y=(page_h - height) / 2,
                width=width,
                height=height,
            )
        )
    return placements


def layout_images(
    image_sizes: list[tuple[int, int]],
    mode: ImageLayoutMode,
    page_size: tuple[float, float] = (A4_WIDTH_PT, A4_HEIGHT_PT),
) -> list[ImagePlacement]:
    """Dispatch to the grid or single-page layout."""
    for width, height in image_sizes:
        if width <= 0 or height <= 0:
            raise ValidationError("image", f"{width}x{height}", "image has no pixels")
    if mode is ImageLayoutMode.GRID:
        return layout_grid(image_sizes, page_size)
    return layout_single(image_sizes, page_size)


# ---------------------------------------------------------------------------
# Overlay (watermark) placement
# ---------------------------------------------------------------------------


class OverlayPosition(Enum):
    """Anchor of a stamp on the page."""

    CENTER = "center"
    TOP_LEFT = "top-left"
    TOP_RIGHT = "top-right"
    BOTTOM_LEFT = "bottom-left"
    BOTTOM_RIGHT = "bottom-right"


class WatermarkKind(Enum):
    TEXT = "text"
    IMAGE = "image"


@dataclass
class WatermarkSpec:
    """What to stamp on every page and how.

    Attributes:
        kind: Text or image watermark
        opacity: 0 (invisible) to 1 (opaque)
        rotation: Degrees, counter-clockwise around the anchor point
        size_percent: Size relative to the shorter page side, in (0, 100]
        position: Where on the page the stamp is anchored
        text: Text payload (TEXT kind)
        color: "#RRGGBB" fill color (TEXT kind)
        image: Encoded image payload (IMAGE kind)
    """

    kind: WatermarkKind = WatermarkKind.TEXT
    opacity: float = 0.3
    rotation: float = 45.0
    size_percent: float = 50.0
    position: OverlayPosition = OverlayPosition.CENTER
    text: str = "CONFIDENTIAL"
    color: str = "#FF0000"
    image: bytes | None = None

    def validated(self) -> "WatermarkSpec":
        """Return a copy with numeric fields clamped into range.

        Raises:
            ValidationError: If the payload for the chosen kind is missing.
        """
        if self.kind is WatermarkKind.TEXT and not self.text:
            raise ValidationError("text", reason="text watermark needs some text")
        if self.kind is WatermarkKind.IMAGE and not self.image:
            raise ValidationError("image", reason="image watermark needs an image")

        size = self.size_percent if self.size_percent > 0 else 100.0
        return WatermarkSpec(
            kind=self.kind,
            opacity=min(max(self.opacity, 0.0), 1.0),
            rotation=self.rotation % 360,
            size_percent=min(size, 100.0),
            position=self.position,
            text=self.text,
            color=self.color,
            image=self.image,
        )

    @property
    def rgb(self) -> tuple[float, float, float]:
        return parse_hex_color(self.color)


@dataclass
class OverlayGeometry:
    """Computed box of a stamp on one page."""

    x: float
    y: float
    width: float
    height: float
    font_size: float = 0.0


def overlay_position(
    position: OverlayPosition,
    overlay_size: tuple[float, float],
    page_size: tuple[float, float],
) -> tuple[float, float]:
    """Lower-left corner of an overlay box of the given size.

    Corners sit OVERLAY_EDGE_INSET units from the page edges.
    """
    ow, oh = overlay_size
    page_w, page_h = page_size
    inset = OVERLAY_EDGE_INSET

    if position is OverlayPosition.TOP_LEFT:
        return inset, page_h - inset - oh
    if position is OverlayPosition.TOP_RIGHT:
        return page_w - inset - ow, page_h - inset - oh
    if position is OverlayPosition.BOTTOM_LEFT:
        return inset, inset
    if position is OverlayPosition.BOTTOM_RIGHT:
        return page_w - inset - ow, inset
    return (page_w - ow) / 2, (page_h - oh) / 2


def measure_text(text: str, font_size: float, font_name: str = WATERMARK_FONT_NAME) -> float:
    """Rendered width of text in points using the font's metrics."""
    return pdfmetrics.stringWidth(text, font_name, font_size)


def text_overlay_geometry(
    text: str,
    size_percent: float,
    position: OverlayPosition,
    page_size: tuple[float, float],
    font_name: str = WATERMARK_FONT_NAME,
) -> OverlayGeometry:
    """Box of a text stamp: font size follows the shorter page side."""
    font_size = size_percent / 100 * min(page_size)
    width = measure_text(text, font_size, font_name)
    x, y = overlay_position(position, (width, font_size), page_size)
    return OverlayGeometry(x=x, y=y, width=width, height=font_size, font_size=font_size)


def image_overlay_geometry(
    image_size: tuple[int, int],
    size_percent: float,
    position: OverlayPosition,
    page_size: tuple[float, float],
) -> OverlayGeometry:
    """Box of an image stamp: width follows the shorter page side, height the aspect ratio."""
    img_w, img_h = image_size
    width = size_percent / 100 * min(page_size)
    height = width / img_w * img_h
    x, y = overlay_position(position, (width, height), page_size)
    return OverlayGeometry(x=x, y=y, width=width, height=height)
