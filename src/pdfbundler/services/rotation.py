"""
PdfBundler - Rotation Tracker

Per-page rotation state kept apart from the document itself. The user
turns pages left and right; only when the result is applied does the
document receive an absolute /Rotate value (original + delta), so saving
twice never rotates twice.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from pdfbundler.constants import ROTATION_STEP_DEGREES, VALID_ROTATIONS

if TYPE_CHECKING:
    from pdfbundler.services.document_library import Document

logger = logging.getLogger(__name__)


class Direction(Enum):
    """Rotation direction for a single 90 degree step."""

    CLOCKWISE = ROTATION_STEP_DEGREES
    COUNTERCLOCKWISE = -ROTATION_STEP_DEGREES


def normalize_rotation(degrees: int) -> int:
    """Bring any angle into {0, 90, 180, 270}, rounding to the nearest step."""
    degrees = degrees % 360
    if degrees not in VALID_ROTATIONS:
        degrees = round(degrees / 90) * 90 % 360
    return degrees


@dataclass
class PageRotation:
    """Rotation state of a single page.

    Attributes:
        page_number: Page number (1-indexed)
        rotation_delta: Rotation added by the user (0, 90, 180, 270)
        original_rotation: /Rotate the page had when loaded
    """

    page_number: int
    rotation_delta: int = 0
    original_rotation: int = 0

    def __post_init__(self) -> None:
        self.rotation_delta = normalize_rotation(self.rotation_delta)
        self.original_rotation = normalize_rotation(self.original_rotation)

    def rotate(self, direction: Direction) -> None:
        self.rotation_delta = normalize_rotation(self.rotation_delta + direction.value)

    @property
    def effective_rotation(self) -> int:
        """Absolute rotation to write to the document."""
        return normalize_rotation(self.original_rotation + self.rotation_delta)

    def to_dict(self) -> dict:
        return {
            "page_number": self.page_number,
            "rotation_delta": self.rotation_delta,
            "original_rotation": self.original_rotation,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PageRotation":
        return cls(
            page_number=data.get("page_number", 1),
            rotation_delta=data.get("rotation_delta", 0),
            original_rotation=data.get("original_rotation", 0),
        )


@dataclass
class RotationTracker:
    """Rotation deltas for every page of one document."""

    pages: list[PageRotation] = field(default_factory=list)

    @classmethod
    def from_rotations(cls, original_rotations: list[int]) -> "RotationTracker":
        """Start tracking a document whose pages have the given /Rotate values."""
        return cls(
            pages=[
                PageRotation(page_number=i + 1, original_rotation=rotation)
                for i, rotation in enumerate(original_rotations)
            ]
        )

    @classmethod
    def from_document(cls, document: "Document") -> "RotationTracker":
        """Start tracking a loaded document."""
        return cls.from_rotations(
            [document.get_page(i).rotation for i in range(document.page_count())]
        )

    def rotate(self, page_index: int, direction: Direction) -> int:
        """Turn one page (0-indexed) by 90 degrees.

        Returns:
            The page's new rotation delta.
        """
        page = self.pages[page_index]
        page.rotate(direction)
        return page.rotation_delta

    def rotate_all(self, direction: Direction) -> None:
        for page in self.pages:
            page.rotate(direction)

    def reset(self) -> None:
        for page in self.pages:
            page.rotation_delta = 0

    def delta(self, page_index: int) -> int:
        return self.pages[page_index].rotation_delta

    @property
    def changed_pages(self) -> list[PageRotation]:
        """Pages with a non-zero delta."""
        return [p for p in self.pages if p.rotation_delta != 0]

    def apply(self, document: "Document") -> int:
        """Write absolute rotations into the document for every changed page.

        Returns:
            Number of pages whose rotation was set.
        """
        changed = self.changed_pages
        for page in changed:
            document.get_page(page.page_number - 1).set_rotation(page.effective_rotation)
            logger.debug(
                "Page %d rotation: original=%d + delta=%d = %d",
                page.page_number,
                page.original_rotation,
                page.rotation_delta,
                page.effective_rotation,
            )
        return len(changed)
