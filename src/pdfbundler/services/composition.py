"""
PdfBundler - Composition Driver

Sequences calls to the document library for every user-facing operation:

  - Merge several documents into one
  - Split a document by page ranges
  - Stamp a text or image watermark on every page
  - Apply tracked page rotations
  - Compose images into a new document
  - Compress and password-protect
  - Repair a damaged document (via the recovery cascade)

Operations take and return bytes. Every document opened here is closed
before the operation returns, and each output is serialized exactly once.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any

import pikepdf

from pdfbundler.constants import A4_HEIGHT_PT, A4_WIDTH_PT
from pdfbundler.services.document_library import (
    CompressionLevel,
    Document,
    DocumentLibrary,
    EncryptionLevel,
    ImageDraw,
    ImageSource,
    Permissions,
    SaveOptions,
    TextDraw,
    load_image,
)
from pdfbundler.services.layout import (
    ImageLayoutMode,
    WatermarkKind,
    WatermarkSpec,
    image_overlay_geometry,
    layout_images,
    text_overlay_geometry,
)
from pdfbundler.services.ranges import PageRange, normalize_range
from pdfbundler.services.recovery import RepairResult
from pdfbundler.services.rotation import RotationTracker
from pdfbundler.services.session import Session
from pdfbundler.utils.exceptions import (
    OperationInProgressError,
    ParseError,
    PdfBundlerError,
    RepairAlreadySucceededError,
    RepairLimitReachedError,
    SaveError,
    ValidationError,
)
from pdfbundler.utils.i18n import _

logger = logging.getLogger(__name__)


class ErrorCode(Enum):
    """Error classification for composition operations."""

    NONE = auto()
    FILE_NOT_FOUND = auto()
    PERMISSION_DENIED = auto()
    CORRUPT_PDF = auto()
    PASSWORD_PROTECTED = auto()
    INVALID_INPUT = auto()
    SAVE_FAILED = auto()
    BUSY = auto()
    REPAIR_REFUSED = auto()
    DISK_FULL = auto()
    UNKNOWN = auto()


def classify_error(e: Exception) -> ErrorCode:
    """Classify an exception into an ErrorCode."""
    if isinstance(e, FileNotFoundError):
        return ErrorCode.FILE_NOT_FOUND
    if isinstance(e, PermissionError):
        return ErrorCode.PERMISSION_DENIED
    if isinstance(e, pikepdf.PasswordError):
        return ErrorCode.PASSWORD_PROTECTED
    if isinstance(e, (ParseError, pikepdf.PdfError)):
        return ErrorCode.CORRUPT_PDF
    if isinstance(e, ValidationError):
        return ErrorCode.INVALID_INPUT
    if isinstance(e, SaveError):
        return ErrorCode.SAVE_FAILED
    if isinstance(e, OperationInProgressError):
        return ErrorCode.BUSY
    if isinstance(e, (RepairLimitReachedError, RepairAlreadySucceededError)):
        return ErrorCode.REPAIR_REFUSED
    if isinstance(e, OSError) and e.errno == 28:
        return ErrorCode.DISK_FULL
    return ErrorCode.UNKNOWN


def friendly_error(e: Exception) -> str:
    """Map common exceptions to user-facing messages."""
    if isinstance(e, FileNotFoundError):
        return _("Could not find the file. Was it moved or deleted?")
    if isinstance(e, PermissionError):
        return _("Cannot write to this folder. Choose a different location.")
    if isinstance(e, pikepdf.PasswordError):
        return _("This PDF is password-protected. Remove the password first.")
    if isinstance(e, ParseError):
        return _(
            "The PDF file appears to be damaged or invalid: {error}. Try the repair command."
        ).format(error=e.reason)
    if isinstance(e, SaveError):
        return _("Could not save the document: {error}").format(error=e.reason)
    if isinstance(e, PdfBundlerError):
        return e.message
    return str(e)


@dataclass
class OperationResult:
    """Generic result of a composition operation written to disk."""

    success: bool
    message: str = ""
    output_paths: list[str] = field(default_factory=list)
    pages_affected: int = 0
    error_code: ErrorCode = ErrorCode.NONE


def fail(e: Exception) -> OperationResult:
    """Create a failed OperationResult from an exception."""
    return OperationResult(
        success=False,
        message=friendly_error(e),
        error_code=classify_error(e),
    )


# ---------------------------------------------------------------------------
# Merge list management
# ---------------------------------------------------------------------------


def move_item(items: list[Any], index: int, direction: str) -> bool:
    """Move an entry of the merge list one step "up" or "down".

    Returns:
        True if the entry moved, False at the list boundaries.
    """
    if direction not in ("up", "down"):
        raise ValidationError("direction", direction, "must be 'up' or 'down'")
    target = index - 1 if direction == "up" else index + 1
    if not 0 <= index < len(items) or not 0 <= target < len(items):
        return False
    items[index], items[target] = items[target], items[index]
    return True


def remove_item(items: list[Any], index: int) -> Any | None:
    """Drop an entry from the merge list, returning it (None if out of range)."""
    if not 0 <= index < len(items):
        return None
    return items.pop(index)


# ---------------------------------------------------------------------------
# Driver
# ---------------------------------------------------------------------------


def _copy_page(target: Document, source: Document, index: int) -> None:
    [page_ref] = target.copy_pages(source, [index])
    target.add_page(page_ref)


class CompositionDriver:
    """Runs document operations against a DocumentLibrary.

    Args:
        library: Library used to load, build and save documents
        session: Processing guard and repair state; a fresh one if omitted
    """

    def __init__(self, library: DocumentLibrary, session: Session | None = None) -> None:
        self.library = library
        self.session = session or Session()

    # -- Merge --------------------------------------------------------------

    def merge(self, sources: list[bytes]) -> bytes:
        """Concatenate every page of every source, in input order.

        Raises:
            ValidationError: If no sources are given.
            ParseError: If a source cannot be loaded.
            SaveError: If the merged document cannot be serialized.
        """
        if not sources:
            raise ValidationError("sources", reason=_("No input files provided."))

        with self.session.processing("merge"):
            target = self.library.new_document()
            opened: list[Document] = []
            try:
                for number, data in enumerate(sources, 1):
                    source = self.library.load(data)
                    opened.append(source)
                    count = source.page_count()
                    for page_ref in target.copy_pages(source, list(range(count))):
                        target.add_page(page_ref)
                    logger.info("Merged %d pages from source %d", count, number)

                output = target.save()
                logger.info(
                    "Merged %d files -> %d pages", len(sources), target.page_count()
                )
                return output
            finally:
                target.close()
                for source in opened:
                    source.close()

    # -- Split --------------------------------------------------------------

    def split(self, source_data: bytes, ranges: list[PageRange]) -> list[tuple[str, bytes]]:
        """Produce one document per range, in range order.

        Ranges are clamped to the source first; overlapping ranges copy the
        same pages into several outputs.

        Returns:
            (range name, document bytes) for each range.
        """
        if not ranges:
            raise ValidationError("ranges", reason=_("At least one range is required."))

        with self.session.processing("split"):
            source = self.library.load(source_data)
            try:
                page_count = source.page_count()
                outputs: list[tuple[str, bytes]] = []
                for page_range in ranges:
                    page_range = normalize_range(page_range, page_count)
                    target = self.library.new_document()
                    try:
                        for index in page_range.page_indices:
                            _copy_page(target, source, index)
                        outputs.append((page_range.name, target.save()))
                    finally:
                        target.close()
                    logger.info(
                        "Split '%s': pages %d-%d",
                        page_range.name,
                        page_range.start,
                        page_range.end,
                    )
                return outputs
            finally:
                source.close()

    # -- Watermark ----------------------------------------------------------

    def watermark(self, source_data: bytes, spec: WatermarkSpec) -> bytes:
        """Stamp the same watermark on every page.

        Geometry is computed per page from that page's own size.

        Raises:
            ValidationError: If the watermark has no payload or a bad color/image.
        """
        spec = spec.validated()
        stamp_image: ImageSource | None = None
        rgb = (0.0, 0.0, 0.0)
        if spec.kind is WatermarkKind.IMAGE:
            try:
                stamp_image = load_image(spec.image)
            except OSError as e:
                reason = _("Unreadable image: {error}").format(error=e)
                raise ValidationError("image", reason=reason) from e
        else:
            try:
                rgb = spec.rgb
            except ValueError as e:
                raise ValidationError("color", spec.color, str(e)) from e

        with self.session.processing("watermark"):
            document = self.library.load(source_data)
            try:
                for index in range(document.page_count()):
                    page = document.get_page(index)
                    page_size = page.get_size()
                    if stamp_image is not None:
                        geometry = image_overlay_geometry(
                            (stamp_image.width, stamp_image.height),
                            spec.size_percent,
                            spec.position,
                            page_size,
                        )
                        page.draw_image(
                            ImageDraw(
                                data=stamp_image.data,
                                x=geometry.x,
                                y=geometry.y,
                                width=geometry.width,
                                height=geometry.height,
                                opacity=spec.opacity,
                                rotation=spec.rotation,
                            )
                        )
                    else:
                        geometry = text_overlay_geometry(
                            spec.text, spec.size_percent, spec.position, page_size
                        )
                        page.draw_text(
                            TextDraw(
                                text=spec.text,
                                x=geometry.x,
                                y=geometry.y,
                                font_size=geometry.font_size,
                                color=rgb,
                                opacity=spec.opacity,
                                rotation=spec.rotation,
                            )
                        )
                logger.info(
                    "Watermarked %d pages (%s, %s)",
                    document.page_count(),
                    spec.kind.value,
                    spec.position.value,
                )
                return document.save()
            finally:
                document.close()

    # -- Rotate -------------------------------------------------------------

    def rotation_tracker(self, source_data: bytes) -> RotationTracker:
        """Start a RotationTracker from the pages' current rotations."""
        document = self.library.load(source_data)
        try:
            return RotationTracker.from_document(document)
        finally:
            document.close()

    def rotate(self, source_data: bytes, tracker: RotationTracker) -> bytes:
        """Write the tracker's absolute rotations into the document and save."""
        with self.session.processing("rotate"):
            document = self.library.load(source_data)
            try:
                if len(tracker.pages) != document.page_count():
                    raise ValidationError(
                        "tracker",
                        str(len(tracker.pages)),
                        _("tracker does not match the document's page count"),
                    )
                changed = tracker.apply(document)
                logger.info("Rotated %d of %d pages", changed, document.page_count())
                return document.save()
            finally:
                document.close()

    # -- Images -------------------------------------------------------------

    def images_to_document(
        self,
        images: list[ImageSource],
        mode: ImageLayoutMode = ImageLayoutMode.SINGLE,
        page_size: tuple[float, float] = (A4_WIDTH_PT, A4_HEIGHT_PT),
    ) -> bytes:
        """Compose images into a new document, one per page or in a grid."""
        if not images:
            raise ValidationError("images", reason=_("No images provided."))

        placements = layout_images([(img.width, img.height) for img in images], mode, page_size)

        with self.session.processing("images"):
            document = self.library.new_document()
            try:
                pages = []
                for placement in placements:
                    while len(pages) <= placement.page_index:
                        pages.append(document.new_page(*page_size))
                    pages[placement.page_index].draw_image(
                        ImageDraw(
                            data=images[placement.image_index].data,
                            x=placement.x,
                            y=placement.y,
                            width=placement.width,
                            height=placement.height,
                        )
                    )
                logger.info(
                    "Composed %d images on %d pages (%s)", len(images), len(pages), mode.value
                )
                return document.save()
            finally:
                document.close()

    # -- Compress / protect -------------------------------------------------

    def compress(self, source_data: bytes, level: CompressionLevel) -> bytes:
        """Re-save the document with the given compression level."""
        with self.session.processing("compress"):
            document = self.library.load(source_data)
            try:
                output = document.save(SaveOptions(compression=level))
            finally:
                document.close()
        logger.info(
            "Compressed (%s): %d -> %d bytes", level.value, len(source_data), len(output)
        )
        return output

    def protect(
        self,
        source_data: bytes,
        user_password: str,
        owner_password: str = "",
        permissions: Permissions | None = None,
        encryption: EncryptionLevel = EncryptionLevel.AES,
    ) -> bytes:
        """Encrypt the document with a user password and permission flags.

        Raises:
            ValidationError: If the user password is empty.
        """
        if not user_password:
            raise ValidationError("user_password", reason=_("A password is required."))

        options = SaveOptions(
            user_password=user_password,
            owner_password=owner_password,
            encryption=encryption,
            permissions=permissions or Permissions(),
        )
        with self.session.processing("protect"):
            document = self.library.load(source_data)
            try:
                output = document.save(options)
            finally:
                document.close()
        logger.info("Protected document with %s encryption", encryption.value)
        return output

    # -- Repair -------------------------------------------------------------

    def repair(self, source_data: bytes) -> RepairResult:
        """Run one full recovery cascade against a damaged document.

        Repeated calls with the same bytes continue the same cascade, so
        the attempt limit applies across calls.

        Raises:
            RepairAlreadySucceededError: If this input was already repaired.
            RepairLimitReachedError: If every allowed run has failed.
        """
        with self.session.processing("repair"):
            cascade = self.session.cascade_for(self.library, source_data)
            return cascade.run()
