"""
PdfBundler - Services Package

Page-range, layout, rotation and recovery logic, and the driver that
runs them against the document library.
"""

from pdfbundler.services.composition import CompositionDriver
from pdfbundler.services.document_library import PikepdfLibrary
from pdfbundler.services.session import Session

__all__ = ["CompositionDriver", "PikepdfLibrary", "Session"]
