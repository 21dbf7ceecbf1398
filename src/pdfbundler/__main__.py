#!/usr/bin/env python3
"""
PdfBundler - Entry point for python -m pdfbundler

This module allows the package to be run as a module:
    python -m pdfbundler
"""

import sys

from pdfbundler import main

if __name__ == "__main__":
    sys.exit(main())
