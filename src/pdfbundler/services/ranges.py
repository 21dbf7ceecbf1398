"""
PdfBundler - Page Ranges

Validation and normalization of the page ranges that drive a split.

Ranges are 1-based and inclusive. They may overlap or leave pages out;
each one becomes an independent output document.
"""

import logging
from dataclasses import dataclass

from pdfbundler.utils.exceptions import ValidationError
from pdfbundler.utils.i18n import _

logger = logging.getLogger(__name__)

DEFAULT_RANGE_NAME = "Split {number}"


@dataclass
class PageRange:
    """A labelled, 1-based inclusive page interval.

    Attributes:
        start: First page (1-indexed)
        end: Last page (1-indexed, inclusive)
        name: Label used for the output file; not required to be unique
    """

    start: int
    end: int
    name: str

    @property
    def page_indices(self) -> list[int]:
        """0-based page indices covered by this range."""
        return list(range(self.start - 1, self.end))

    def __len__(self) -> int:
        return max(0, self.end - self.start + 1)


def normalize_range(page_range: PageRange, page_count: int) -> PageRange:
    """Clamp a range into the bounds of a document.

    start is clamped to [1, page_count], then end to [start, page_count].
    Applying it twice gives the same result as applying it once.

    Args:
        page_range: Range as entered by the user
        page_count: Number of pages in the source document (>= 1)

    Returns:
        A new, clamped PageRange with the same name.
    """
    if page_count < 1:
        raise ValidationError("page_count", str(page_count), "document has no pages")

    start = min(max(1, page_range.start), page_count)
    end = min(max(start, page_range.end), page_count)

    if (start, end) != (page_range.start, page_range.end):
        logger.debug(
            "Clamped range '%s' from %d-%d to %d-%d",
            page_range.name,
            page_range.start,
            page_range.end,
            start,
            end,
        )
    return PageRange(start=start, end=end, name=page_range.name)


def default_range(index: int, page_count: int) -> PageRange:
    """Build the full-document range offered for a new split entry."""
    return PageRange(
        start=1,
        end=max(1, page_count),
        name=_(DEFAULT_RANGE_NAME).format(number=index + 1),
    )


def add_range(ranges: list[PageRange], page_count: int) -> PageRange:
    """Append a default range covering the whole document.

    The new range is named "Split N" with N = len(ranges) + 1, even if that
    name is already taken.

    Returns:
        The range that was appended.
    """
    new_range = default_range(len(ranges), page_count)
    ranges.append(new_range)
    return new_range


def remove_range(ranges: list[PageRange], index: int) -> bool:
    """Remove a range, keeping at least one in the list.

    Returns:
        True if a range was removed, False if the request was refused.
    """
    if len(ranges) <= 1:
        logger.debug("Refusing to remove the last split range")
        return False
    if not 0 <= index < len(ranges):
        return False
    del ranges[index]
    return True


def update_range(
    ranges: list[PageRange],
    index: int,
    field: str,
    value: int | str,
    page_count: int,
) -> PageRange:
    """Edit one field of a range the way the split form does.

    start is kept within [1, end]; end within [start, page_count];
    name is stored as given.

    Raises:
        ValidationError: If the field name is unknown or a number is not numeric.
    """
    current = ranges[index]

    if field == "name":
        current.name = str(value)
        return current

    if field not in ("start", "end"):
        raise ValidationError(field, str(value), "unknown range field")

    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(field, str(value), "page number must be an integer") from None

    if field == "start":
        current.start = min(max(1, number), current.end)
    else:
        current.end = min(max(current.start, number), page_count)
    return current


class RangeSet:
    """The split ranges defined for one source document.

    Always holds at least one range; starts with a single range covering
    every page.
    """

    def __init__(self, page_count: int) -> None:
        self.page_count = page_count
        self.ranges: list[PageRange] = [default_range(0, page_count)]

    def __iter__(self):
        return iter(self.ranges)

    def __len__(self) -> int:
        return len(self.ranges)

    def __getitem__(self, index: int) -> PageRange:
        return self.ranges[index]

    def add(self) -> PageRange:
        return add_range(self.ranges, self.page_count)

    def remove(self, index: int) -> bool:
        return remove_range(self.ranges, index)

    def update(self, index: int, field: str, value: int | str) -> PageRange:
        return update_range(self.ranges, index, field, value, self.page_count)

    def replace(self, ranges: list[PageRange]) -> None:
        """Swap in a new list of ranges (must not be empty)."""
        if not ranges:
            raise ValidationError("ranges", reason="at least one range is required")
        self.ranges = list(ranges)

    def normalized(self) -> list[PageRange]:
        """All ranges clamped to the document, in list order."""
        return [normalize_range(r, self.page_count) for r in self.ranges]
