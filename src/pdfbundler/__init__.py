"""
PdfBundler - Python package for assembling and repairing PDF bundles

Merge, split, rotate, watermark, compress, protect and recover PDF
documents, and compose images into new ones.
"""

import sys

__version__ = "1.0.0"
__license__ = "GPL-3.0"


def main() -> int:
    """Main entry point for the application.

    Returns:
        The application exit code.
    """
    from pdfbundler.cli import main as cli_main

    return cli_main()


__all__ = ["main", "__version__", "__license__"]


if __name__ == "__main__":
    sys.exit(main())
