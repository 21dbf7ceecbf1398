"""Pytest configuration for pdfbundler tests.

Provides the in-memory document library, a driver bound to it, and
small helpers for building real PDFs and images on disk.
"""

import io

import pikepdf
import pytest
from fakes import FakeLibrary
from PIL import Image

from pdfbundler.services.composition import CompositionDriver
from pdfbundler.services.session import Session


def make_png(width: int = 200, height: int = 100, color=(255, 0, 0)) -> bytes:
    """Encode a solid-color PNG."""
    buf = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buf, format="PNG")
    return buf.getvalue()


def make_pdf_bytes(num_pages: int = 3, size=(612, 792), rotations=None) -> bytes:
    """Build a simple PDF whose pages draw 'Page N'."""
    pdf = pikepdf.Pdf.new()
    for i in range(num_pages):
        page = pikepdf.Page(
            pikepdf.Dictionary(
                Type=pikepdf.Name.Page,
                MediaBox=[0, 0, size[0], size[1]],
                Contents=pdf.make_stream(f"BT /F1 12 Tf 100 700 Td (Page {i + 1}) Tj ET".encode()),
            )
        )
        if rotations and rotations[i]:
            page.Rotate = rotations[i]
        pdf.pages.append(page)
    buf = io.BytesIO()
    pdf.save(buf)
    pdf.close()
    return buf.getvalue()


def page_texts(data: bytes) -> list[bytes]:
    """Content stream of every page of a PDF, in order."""
    with pikepdf.open(io.BytesIO(data)) as pdf:
        return [page.Contents.read_bytes() for page in pdf.pages]


@pytest.fixture
def library():
    return FakeLibrary()


@pytest.fixture
def session():
    return Session()


@pytest.fixture
def driver(library, session):
    return CompositionDriver(library, session)


@pytest.fixture
def png_bytes():
    return make_png()
