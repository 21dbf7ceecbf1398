"""
PdfBundler - Numeric Constants

Simple numeric constants with ZERO internal imports to avoid circular dependencies.
For application-level constants (strings, paths), use config.py.
"""

from typing import Final

# ============================================================================
# Size Constants
# ============================================================================

# 1 mm in PDF points (1/72 inch)
POINTS_PER_MM: Final[float] = 72.0 / 25.4

# A4 portrait in points
A4_WIDTH_PT: Final[float] = 595.2755905511812
A4_HEIGHT_PT: Final[float] = 841.8897637795277

# ============================================================================
# Overlay (watermark) Placement
# ============================================================================

# Fixed distance from page edges for corner positions
OVERLAY_EDGE_INSET: Final[float] = 20.0

WATERMARK_FONT_NAME: Final[str] = "Helvetica-Bold"

# ============================================================================
# Image Grid Layout
# ============================================================================

GRID_MARGIN_PT: Final[float] = 10 * POINTS_PER_MM

# Fraction of a grid cell an image may occupy
GRID_CELL_FILL: Final[float] = 0.9

# Image counts at which the grid widens
GRID_SINGLE_MAX: Final[int] = 1
GRID_TWO_COLUMN_MAX: Final[int] = 4

# ============================================================================
# Rotation
# ============================================================================

ROTATION_STEP_DEGREES: Final[int] = 90
VALID_ROTATIONS: Final[tuple[int, ...]] = (0, 90, 180, 270)

# ============================================================================
# Recovery
# ============================================================================

MAX_REPAIR_ATTEMPTS: Final[int] = 3
