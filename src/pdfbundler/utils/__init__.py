"""
PdfBundler - Utils Package

Utility modules for the application.
"""

from pdfbundler.utils.config_manager import ConfigManager, get_config_manager
from pdfbundler.utils.format_utils import format_file_size
from pdfbundler.utils.i18n import _, setup_i18n
from pdfbundler.utils.logger import logger

__all__ = [
    "logger",
    "_",
    "setup_i18n",
    "ConfigManager",
    "get_config_manager",
    "format_file_size",
]
