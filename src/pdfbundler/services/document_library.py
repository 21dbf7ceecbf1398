"""
PdfBundler - Document Library

The contract the orchestration layer expects from a PDF library, plus the
pikepdf-backed implementation used by the application.

Structure (loading, copying pages, rotation, saving, encryption) is handled
by pikepdf. Text and image stamps are painted with ReportLab onto a
single-page overlay that pikepdf then places over the target page. Pillow
decodes raster images.
"""

import io
import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Protocol

import pikepdf
from PIL import Image, ImageOps
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from pdfbundler.constants import WATERMARK_FONT_NAME
from pdfbundler.utils.exceptions import CopyError, ParseError, SaveError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Value types shared by every implementation
# ---------------------------------------------------------------------------


@dataclass
class TextDraw:
    """A line of text to paint on a page.

    (x, y) is the baseline origin in page units; rotation (degrees,
    counter-clockwise) turns the text around that origin.
    """

    text: str
    x: float
    y: float
    font_size: float
    font_name: str = WATERMARK_FONT_NAME
    color: tuple[float, float, float] = (0.0, 0.0, 0.0)
    opacity: float = 1.0
    rotation: float = 0.0


@dataclass
class ImageDraw:
    """A raster image to paint on a page inside the box (x, y, width, height)."""

    data: bytes
    x: float
    y: float
    width: float
    height: float
    opacity: float = 1.0
    rotation: float = 0.0


class CompressionLevel(Enum):
    """How aggressively to pack the document on save."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class EncryptionLevel(Enum):
    """Cipher family used when a password is set."""

    AES = "aes"
    RC4 = "rc4"


@dataclass
class Permissions:
    """What a reader may do with a protected document."""

    printing: bool = True
    modifying: bool = True
    copying: bool = True
    annotating: bool = True
    filling_forms: bool = True


@dataclass
class SaveOptions:
    """Serialization options passed to Document.save()."""

    compression: CompressionLevel | None = None
    user_password: str = ""
    owner_password: str = ""
    encryption: EncryptionLevel = EncryptionLevel.AES
    permissions: Permissions = field(default_factory=Permissions)

    @property
    def encrypted(self) -> bool:
        return bool(self.user_password)


@dataclass
class ImageSource:
    """An input image with its pixel dimensions (after EXIF orientation)."""

    data: bytes
    width: int
    height: int
    name: str = ""


# ---------------------------------------------------------------------------
# Collaborator contract
# ---------------------------------------------------------------------------


class PageHandle(Protocol):
    """A page inside a loaded document."""

    @property
    def rotation(self) -> int: ...

    def get_size(self) -> tuple[float, float]: ...

    def set_rotation(self, degrees: int) -> None: ...

    def draw_text(self, spec: TextDraw) -> None: ...

    def draw_image(self, spec: ImageDraw) -> None: ...


class Document(Protocol):
    """An ordered collection of pages owned by the library."""

    def page_count(self) -> int: ...

    def get_page(self, index: int) -> PageHandle: ...

    def copy_pages(self, source: "Document", indices: list[int]) -> list[Any]: ...

    def add_page(self, page_ref: Any) -> None: ...

    def new_page(self, width: float, height: float) -> PageHandle: ...

    def save(self, options: SaveOptions | None = None) -> bytes: ...

    def close(self) -> None: ...


class DocumentLibrary(Protocol):
    """Entry points for obtaining documents."""

    def load(self, data: bytes, *, lenient: bool = False) -> Document: ...

    def new_document(self) -> Document: ...


# ---------------------------------------------------------------------------
# Image helpers
# ---------------------------------------------------------------------------


def _open_image(data: bytes) -> Image.Image:
    """Decode image bytes applying EXIF orientation."""
    img = Image.open(io.BytesIO(data))
    return ImageOps.exif_transpose(img)


def load_image(data: bytes, name: str = "") -> ImageSource:
    """Read image bytes and record their oriented pixel size.

    Args:
        data: Encoded image (PNG, JPEG, ...)
        name: Optional display name

    Returns:
        ImageSource with width/height in pixels.

    Raises:
        OSError: If Pillow cannot identify the image.
    """
    img = _open_image(data)
    width, height = img.size
    return ImageSource(data=data, width=width, height=height, name=name)


def load_image_file(path: str | Path) -> ImageSource:
    """Read an image file from disk into an ImageSource."""
    path = Path(path)
    return load_image(path.read_bytes(), name=path.name)


# ---------------------------------------------------------------------------
# pikepdf implementation
# ---------------------------------------------------------------------------


def _render_overlay(width: float, height: float, paint) -> bytes:
    """Render a single page of the given size with ReportLab.

    Args:
        width: Page width in points
        height: Page height in points
        paint: Callable receiving the canvas

    Returns:
        The overlay page as PDF bytes.
    """
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=(width, height))
    c.saveState()
    paint(c)
    c.restoreState()
    c.showPage()
    c.save()
    return buf.getvalue()


class PikepdfPage:
    """PageHandle backed by a pikepdf.Page."""

    def __init__(self, page: pikepdf.Page, owner: "PikepdfDocument") -> None:
        self._page = page
        self._owner = owner

    @property
    def rotation(self) -> int:
        return int(self._page.obj.get("/Rotate", 0)) % 360

    def get_size(self) -> tuple[float, float]:
        box = self._page.mediabox
        return float(box[2]) - float(box[0]), float(box[3]) - float(box[1])

    def set_rotation(self, degrees: int) -> None:
        self._page.Rotate = degrees % 360

    def draw_text(self, spec: TextDraw) -> None:
        def paint(c: canvas.Canvas) -> None:
            c.setFillColorRGB(*spec.color)
            c.setFillAlpha(spec.opacity)
            c.setFont(spec.font_name, spec.font_size)
            c.translate(spec.x, spec.y)
            c.rotate(spec.rotation)
            c.drawString(0, 0, spec.text)

        self._stamp(paint)

    def draw_image(self, spec: ImageDraw) -> None:
        reader = ImageReader(_open_image(spec.data))

        def paint(c: canvas.Canvas) -> None:
            c.setFillAlpha(spec.opacity)
            c.translate(spec.x, spec.y)
            c.rotate(spec.rotation)
            c.drawImage(reader, 0, 0, width=spec.width, height=spec.height, mask="auto")

        self._stamp(paint)

    def _stamp(self, paint) -> None:
        """Paint an overlay the size of this page and place it on top."""
        box = self._page.mediabox
        x0, y0 = float(box[0]), float(box[1])
        width, height = self.get_size()

        def shifted(c: canvas.Canvas) -> None:
            # Overlay pages start at the origin; the media box may not
            c.translate(-x0, -y0)
            paint(c)

        overlay_pdf = pikepdf.open(io.BytesIO(_render_overlay(width, height, shifted)))
        # Foreign stream data is read lazily, so the overlay stays open until save
        self._owner._keep_alive(overlay_pdf)

        formx = self._owner.pdf.copy_foreign(overlay_pdf.pages[0].as_form_xobject())
        self._page.add_overlay(formx, pikepdf.Rectangle(x0, y0, x0 + width, y0 + height))


class PikepdfDocument:
    """Document backed by a pikepdf.Pdf."""

    def __init__(self, pdf: pikepdf.Pdf) -> None:
        self.pdf = pdf
        self._dependents: list[pikepdf.Pdf] = []

    def __enter__(self) -> "PikepdfDocument":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _keep_alive(self, other: pikepdf.Pdf) -> None:
        self._dependents.append(other)

    def page_count(self) -> int:
        return len(self.pdf.pages)

    def get_page(self, index: int) -> PikepdfPage:
        return PikepdfPage(self.pdf.pages[index], self)

    def copy_pages(self, source: "PikepdfDocument", indices: list[int]) -> list[pikepdf.Page]:
        """Copy pages of another document into this one (not yet placed).

        Raises:
            CopyError: For the first index that cannot be copied.
        """
        refs = []
        for index in indices:
            try:
                copied = self.pdf.copy_foreign(source.pdf.pages[index].obj)
            except (pikepdf.PdfError, IndexError, ValueError) as e:
                raise CopyError(index, str(e)) from e
            refs.append(pikepdf.Page(copied))
        return refs

    def add_page(self, page_ref: pikepdf.Page) -> None:
        self.pdf.pages.append(page_ref)

    def new_page(self, width: float, height: float) -> PikepdfPage:
        page = pikepdf.Page(
            pikepdf.Dictionary(
                Type=pikepdf.Name.Page,
                MediaBox=[0, 0, width, height],
                Contents=self.pdf.make_stream(b""),
                Resources=pikepdf.Dictionary(),
            )
        )
        self.pdf.pages.append(page)
        return PikepdfPage(self.pdf.pages[-1], self)

    def save(self, options: SaveOptions | None = None) -> bytes:
        """Serialize the document.

        Raises:
            SaveError: If pikepdf cannot write the document.
        """
        options = options or SaveOptions()
        kwargs: dict[str, Any] = {"encryption": False}

        if options.compression is not None:
            kwargs["compress_streams"] = True
            if options.compression is CompressionLevel.LOW:
                kwargs["object_stream_mode"] = pikepdf.ObjectStreamMode.preserve
            else:
                kwargs["object_stream_mode"] = pikepdf.ObjectStreamMode.generate
            if options.compression is CompressionLevel.HIGH:
                kwargs["recompress_flate"] = True
                kwargs["stream_decode_level"] = pikepdf.StreamDecodeLevel.generalized

        if options.encrypted:
            kwargs["encryption"] = _build_encryption(options)
            # Older readers choke on object streams in encrypted files
            kwargs["object_stream_mode"] = pikepdf.ObjectStreamMode.disable

        buf = io.BytesIO()
        try:
            if options.compression is CompressionLevel.HIGH:
                self.pdf.remove_unreferenced_resources()
            self.pdf.save(buf, **kwargs)
        except (pikepdf.PdfError, OSError, ValueError) as e:
            raise SaveError(str(e)) from e
        return buf.getvalue()

    def close(self) -> None:
        for other in self._dependents:
            other.close()
        self._dependents.clear()
        self.pdf.close()


def _build_encryption(options: SaveOptions) -> pikepdf.Encryption:
    """Translate SaveOptions into a pikepdf.Encryption."""
    perms = options.permissions
    allow = pikepdf.Permissions(
        accessibility=True,
        extract=perms.copying,
        modify_annotation=perms.annotating,
        modify_assembly=perms.modifying,
        modify_form=perms.filling_forms,
        modify_other=perms.modifying,
        print_lowres=perms.printing,
        print_highres=perms.printing,
    )
    aes = options.encryption is EncryptionLevel.AES
    return pikepdf.Encryption(
        user=options.user_password,
        owner=options.owner_password or options.user_password,
        R=6 if aes else 4,
        aes=aes,
        # Metadata encryption requires AES
        metadata=aes,
        allow=allow,
    )


class PikepdfLibrary:
    """DocumentLibrary backed by pikepdf."""

    def load(self, data: bytes, *, lenient: bool = False) -> PikepdfDocument:
        """Parse PDF bytes.

        Strict mode refuses damaged cross-reference data; lenient mode lets
        qpdf rebuild it by scanning the file. Encryption is opened with an
        empty user password and dropped on save.

        Raises:
            ParseError: If the bytes cannot be parsed in the chosen mode.
        """
        try:
            pdf = pikepdf.open(
                io.BytesIO(data),
                password="",
                attempt_recovery=lenient,
                suppress_warnings=True,
            )
        except pikepdf.PasswordError as e:
            raise ParseError(f"Document is password-protected: {e}", lenient=lenient) from e
        except (pikepdf.PdfError, OSError, ValueError) as e:
            raise ParseError(str(e), lenient=lenient) from e
        return PikepdfDocument(pdf)

    def new_document(self) -> PikepdfDocument:
        return PikepdfDocument(pikepdf.Pdf.new())


# ---------------------------------------------------------------------------
# Info / Inspection
# ---------------------------------------------------------------------------


@dataclass
class DocumentInfo:
    """Basic information about a PDF file."""

    path: str
    page_count: int
    file_size_bytes: int
    encrypted: bool = False
    pdf_version: str = ""


def get_document_info(pdf_path: str | Path) -> DocumentInfo:
    """Get basic information about a PDF file.

    Args:
        pdf_path: Path to the PDF file.

    Returns:
        DocumentInfo with page count, size and version.

    Raises:
        FileNotFoundError: If the file does not exist.
        ParseError: If the file is not a valid PDF.
    """
    pdf_path = str(pdf_path)
    if not os.path.isfile(pdf_path):
        raise FileNotFoundError(f"File not found: {pdf_path}")

    try:
        with pikepdf.open(pdf_path) as pdf:
            return DocumentInfo(
                path=pdf_path,
                page_count=len(pdf.pages),
                file_size_bytes=os.path.getsize(pdf_path),
                encrypted=pdf.is_encrypted,
                pdf_version=str(pdf.pdf_version),
            )
    except pikepdf.PdfError as e:
        raise ParseError(str(e)) from e
