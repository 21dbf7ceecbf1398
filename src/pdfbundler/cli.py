#!/usr/bin/env python3
"""
PdfBundler CLI - assemble, restructure and recover PDF bundles from the terminal.

Usage:
    python -m pdfbundler <command> [options]

Commands:
    merge       Merge multiple PDFs into one
    split       Split a PDF into named page ranges
    rotate      Rotate pages
    watermark   Stamp a text or image watermark on every page
    images      Build a PDF from images
    compress    Compress a PDF
    protect     Password-protect a PDF
    repair      Recover a damaged PDF
    info        Show page count, size and version

Examples:
    # Merge
    pdfbundler-cli merge a.pdf b.pdf c.pdf -o merged.pdf

    # Split into named ranges
    pdfbundler-cli split input.pdf -o parts/ --ranges "1-2:intro,3-10:body"

    # Rotate pages 1, 3 and 5 clockwise
    pdfbundler-cli rotate input.pdf --angle 90 --pages 1,3,5

    # Watermark
    pdfbundler-cli watermark input.pdf --text DRAFT --position bottom-right
    pdfbundler-cli watermark input.pdf --image logo.png --opacity 0.5

    # Images to PDF (grid layout)
    pdfbundler-cli images a.jpg b.png c.jpg -o photos.pdf --layout grid

    # Compress / protect
    pdfbundler-cli compress input.pdf --level high
    pdfbundler-cli protect input.pdf --password secret --no-copy

    # Repair (up to three runs)
    pdfbundler-cli repair broken.pdf --attempts 3
"""

import argparse
import logging
import sys
from pathlib import Path

import pikepdf

from pdfbundler.config import APP_DESCRIPTION, APP_VERSION, LOG_FORMAT
from pdfbundler.constants import MAX_REPAIR_ATTEMPTS
from pdfbundler.utils.i18n import _

# ---------------------------------------------------------------------------
# Page list / range parsers (shared)
# ---------------------------------------------------------------------------


def _parse_page_list(text: str) -> list[int]:
    """Parse a page specification string into a sorted list of page numbers.

    Supports: "3", "1-5", "1,3,7", "1-3,7,10-12"

    Args:
        text: Page specification string.

    Returns:
        Sorted list of 1-indexed page numbers.
    """
    pages: set[int] = set()
    for part in text.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            if "-" in part:
                start_s, end_s = part.split("-", 1)
                pages.update(range(int(start_s.strip()), int(end_s.strip()) + 1))
            else:
                pages.add(int(part))
        except ValueError:
            raise ValueError(
                f"Invalid page specification '{part}'. "
                "Use numbers and ranges like '1-5' or '1,3,7'."
            ) from None
    return sorted(p for p in pages if p >= 1)


def _parse_ranges(text: str) -> list[tuple[int, int, str]]:
    """Parse a split specification into (start, end, name) tuples.

    Supports: "1-5,6-10", "1-2:intro,3:appendix". Ranges without a name
    are labelled "Split N" by position.

    Args:
        text: Range specification string.

    Returns:
        List of (start, end, name) tuples, 1-indexed inclusive.
    """
    ranges: list[tuple[int, int, str]] = []
    for part in text.split(","):
        part = part.strip()
        if not part:
            continue
        span, _sep, name = part.partition(":")
        name = name.strip() or _("Split {number}").format(number=len(ranges) + 1)
        try:
            if "-" in span:
                start_s, end_s = span.split("-", 1)
                ranges.append((int(start_s.strip()), int(end_s.strip()), name))
            else:
                p = int(span.strip())
                ranges.append((p, p, name))
        except ValueError:
            raise ValueError(
                f"Invalid range specification '{part}'. "
                "Use ranges like '1-5' or '1-2:name,3:other'."
            ) from None
    return ranges


# ---------------------------------------------------------------------------
# Argument parser construction
# ---------------------------------------------------------------------------

_POSITIONS = ["center", "top-left", "top-right", "bottom-left", "bottom-right"]


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with subcommands."""
    p = argparse.ArgumentParser(
        prog="pdfbundler-cli",
        description=APP_DESCRIPTION,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {APP_VERSION}")
    p.add_argument("-v", "--verbose", action="store_true", help=_("Verbose logging (DEBUG)"))

    sub = p.add_subparsers(dest="command", help=_("Available commands"))

    # --- merge ---
    merge_p = sub.add_parser("merge", help=_("Merge multiple PDFs into one"))
    merge_p.add_argument("inputs", nargs="+", type=Path, help=_("Input PDF files (in order)"))
    merge_p.add_argument("-o", "--output", type=Path, default=None, help=_("Output PDF file"))

    # --- split ---
    split_p = sub.add_parser("split", help=_("Split a PDF into page ranges"))
    split_p.add_argument("input", type=Path, help=_("Input PDF file"))
    split_p.add_argument(
        "-o", "--output", type=Path, default=None, help=_("Output directory")
    )
    split_p.add_argument(
        "--ranges",
        type=str,
        required=True,
        metavar="RANGES",
        help=_("Ranges with optional names (e.g. '1-2:intro,3-5:body')"),
    )

    # --- rotate ---
    rotate_p = sub.add_parser("rotate", help=_("Rotate pages in a PDF"))
    rotate_p.add_argument("input", type=Path, help=_("Input PDF file"))
    rotate_p.add_argument("-o", "--output", type=Path, default=None, help=_("Output PDF file"))
    rotate_p.add_argument(
        "--angle",
        type=int,
        required=True,
        choices=[90, 180, 270],
        help=_("Rotation angle in degrees"),
    )
    rotate_p.add_argument(
        "--counterclockwise",
        action="store_true",
        help=_("Rotate counter-clockwise instead of clockwise"),
    )
    rotate_p.add_argument(
        "--pages",
        type=str,
        default=None,
        help=_("Pages to rotate (e.g. '1,3,5' or '1-5'). Default: all."),
    )

    # --- watermark ---
    wm_p = sub.add_parser("watermark", help=_("Stamp a watermark on every page"))
    wm_p.add_argument("input", type=Path, help=_("Input PDF file"))
    wm_p.add_argument("-o", "--output", type=Path, default=None, help=_("Output PDF file"))
    wm_kind = wm_p.add_mutually_exclusive_group()
    wm_kind.add_argument("--text", type=str, default=None, help=_("Watermark text"))
    wm_kind.add_argument("--image", type=Path, default=None, help=_("Watermark image file"))
    wm_p.add_argument("--opacity", type=float, default=None, help=_("Opacity 0-1"))
    wm_p.add_argument("--rotation", type=float, default=None, help=_("Rotation in degrees"))
    wm_p.add_argument(
        "--size", type=float, default=None, help=_("Size as percent of the shorter page side")
    )
    wm_p.add_argument("--color", type=str, default=None, help=_("Text color (#RRGGBB)"))
    wm_p.add_argument("--position", choices=_POSITIONS, default=None, help=_("Placement"))

    # --- images ---
    img_p = sub.add_parser("images", help=_("Build a PDF from images"))
    img_p.add_argument("inputs", nargs="+", type=Path, help=_("Image files (in order)"))
    img_p.add_argument("-o", "--output", type=Path, default=None, help=_("Output PDF file"))
    img_p.add_argument(
        "--layout",
        choices=["single", "grid"],
        default=None,
        help=_("One image per page, or all images in a grid"),
    )

    # --- compress ---
    compress_p = sub.add_parser("compress", help=_("Compress PDF to reduce file size"))
    compress_p.add_argument("input", type=Path, help=_("Input PDF file"))
    compress_p.add_argument(
        "-o", "--output", type=Path, default=None, help=_("Output PDF file")
    )
    compress_p.add_argument(
        "--level",
        choices=["low", "medium", "high"],
        default=None,
        help=_("Compression level"),
    )

    # --- protect ---
    protect_p = sub.add_parser("protect", help=_("Password-protect a PDF"))
    protect_p.add_argument("input", type=Path, help=_("Input PDF file"))
    protect_p.add_argument("-o", "--output", type=Path, default=None, help=_("Output PDF file"))
    protect_p.add_argument("--password", type=str, required=True, help=_("Password to open"))
    protect_p.add_argument(
        "--owner-password", type=str, default="", help=_("Password to change permissions")
    )
    protect_p.add_argument(
        "--encryption", choices=["aes", "rc4"], default=None, help=_("Encryption level")
    )
    perm = protect_p.add_argument_group(_("Permissions"))
    perm.add_argument("--no-print", action="store_true", help=_("Disallow printing"))
    perm.add_argument("--no-modify", action="store_true", help=_("Disallow modifying"))
    perm.add_argument("--no-copy", action="store_true", help=_("Disallow copying content"))
    perm.add_argument("--no-annotate", action="store_true", help=_("Disallow annotations"))
    perm.add_argument("--no-forms", action="store_true", help=_("Disallow filling forms"))

    # --- repair ---
    repair_p = sub.add_parser("repair", help=_("Recover a damaged PDF"))
    repair_p.add_argument("input", type=Path, help=_("Damaged PDF file"))
    repair_p.add_argument("-o", "--output", type=Path, default=None, help=_("Output PDF file"))
    repair_p.add_argument(
        "--attempts",
        type=int,
        default=1,
        choices=range(1, MAX_REPAIR_ATTEMPTS + 1),
        metavar="N",
        help=_("Repair runs to try before giving up (1-3, default: 1)"),
    )

    # --- info ---
    info_p = sub.add_parser("info", help=_("Show PDF page count, size and version"))
    info_p.add_argument("input", type=Path, help=_("Input PDF file"))

    return p


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _default_output(input_path: Path, prefix_key: str) -> Path:
    """Output path next to the input, named with the configured prefix."""
    from pdfbundler.utils.config_manager import get_config_manager

    prefix = get_config_manager().get(f"output.{prefix_key}", "")
    return input_path.with_name(f"{prefix}{input_path.name}")


def _write_output(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)


def _split_output_path(output_dir: Path, name: str, taken: set[str]) -> Path:
    """File path for a named split part inside output_dir.

    Path separators in the name are replaced so every part stays inside
    output_dir. Repeated names get a " (2)", " (3)" ... suffix.
    """
    stem = name.replace("/", "_").replace("\\", "_").strip().lstrip(".") or "split"
    candidate = f"{stem}.pdf"
    number = 2
    while candidate in taken:
        candidate = f"{stem} ({number}).pdf"
        number += 1
    taken.add(candidate)
    return output_dir / candidate


def _run(operation, logger):
    """Run an operation, turning expected failures into an OperationResult."""
    from pdfbundler.services.composition import fail
    from pdfbundler.utils.exceptions import PdfBundlerError

    try:
        return operation()
    except (PdfBundlerError, OSError, pikepdf.PdfError) as e:
        logger.error("Operation failed: %s", e)
        return fail(e)


def _report(result, verb: str) -> int:
    if result.success:
        print(f"{verb}: {result.message}")
        return 0
    print(f"Error: {result.message}", file=sys.stderr)
    return 1


def _driver():
    from pdfbundler.services.composition import CompositionDriver
    from pdfbundler.services.document_library import PikepdfLibrary

    return CompositionDriver(PikepdfLibrary())


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _cmd_merge(args, logger) -> int:
    """Handle the 'merge' command."""
    from pdfbundler.services.composition import OperationResult
    from pdfbundler.utils.config_manager import get_config_manager

    for p in args.inputs:
        if not p.exists():
            print(f"Error: {p} not found", file=sys.stderr)
            return 1

    output = args.output or args.inputs[0].with_name(
        get_config_manager().get("output.merged_name", "merged.pdf")
    )

    def operation():
        data = _driver().merge([p.read_bytes() for p in args.inputs])
        _write_output(output, data)
        return OperationResult(
            success=True,
            message=f"{len(args.inputs)} files → {output}",
            output_paths=[str(output)],
        )

    return _report(_run(operation, logger), "Merged")


def _cmd_split(args, logger) -> int:
    """Handle the 'split' command."""
    from pdfbundler.services.composition import OperationResult
    from pdfbundler.services.ranges import PageRange

    ranges = [PageRange(start=s, end=e, name=n) for s, e, n in _parse_ranges(args.ranges)]
    output_dir = args.output or args.input.parent

    def operation():
        outputs = _driver().split(args.input.read_bytes(), ranges)
        paths = []
        taken: set[str] = set()
        for name, data in outputs:
            path = _split_output_path(output_dir, name, taken)
            _write_output(path, data)
            paths.append(str(path))
            print(f"  {path}")
        return OperationResult(
            success=True,
            message=f"{len(paths)} files → {output_dir}",
            output_paths=paths,
        )

    return _report(_run(operation, logger), "Split")


def _cmd_rotate(args, logger) -> int:
    """Handle the 'rotate' command."""
    from pdfbundler.services.composition import OperationResult
    from pdfbundler.services.rotation import Direction

    output = args.output or _default_output(args.input, "rotate_prefix")
    direction = Direction.COUNTERCLOCKWISE if args.counterclockwise else Direction.CLOCKWISE

    def operation():
        data = args.input.read_bytes()
        driver = _driver()
        tracker = driver.rotation_tracker(data)
        page_count = len(tracker.pages)
        pages = _parse_page_list(args.pages) if args.pages else range(1, page_count + 1)
        pages = [p for p in pages if p <= page_count]
        for page in pages:
            for _step in range(args.angle // 90):
                tracker.rotate(page - 1, direction)
        _write_output(output, driver.rotate(data, tracker))
        return OperationResult(
            success=True,
            message=f"{len(tracker.changed_pages)} pages → {output}",
            output_paths=[str(output)],
            pages_affected=len(tracker.changed_pages),
        )

    return _report(_run(operation, logger), "Rotated")


def _cmd_watermark(args, logger) -> int:
    """Handle the 'watermark' command."""
    from pdfbundler.services.composition import OperationResult
    from pdfbundler.services.layout import OverlayPosition, WatermarkKind, WatermarkSpec
    from pdfbundler.utils.config_manager import get_config_manager

    config = get_config_manager()
    output = args.output or _default_output(args.input, "watermark_prefix")

    def pick(value, key):
        return value if value is not None else config.get(f"watermark.{key}")

    def operation():
        spec = WatermarkSpec(
            kind=WatermarkKind.IMAGE if args.image else WatermarkKind.TEXT,
            opacity=float(pick(args.opacity, "opacity")),
            rotation=float(pick(args.rotation, "rotation")),
            size_percent=float(pick(args.size, "size")),
            position=OverlayPosition(pick(args.position, "position")),
            text=pick(args.text, "text"),
            color=pick(args.color, "color"),
            image=args.image.read_bytes() if args.image else None,
        )
        _write_output(output, _driver().watermark(args.input.read_bytes(), spec))
        return OperationResult(success=True, message=str(output), output_paths=[str(output)])

    return _report(_run(operation, logger), "Watermarked")


def _cmd_images(args, logger) -> int:
    """Handle the 'images' command."""
    from pdfbundler.services.composition import OperationResult
    from pdfbundler.services.document_library import load_image_file
    from pdfbundler.services.layout import ImageLayoutMode
    from pdfbundler.utils.config_manager import get_config_manager

    config = get_config_manager()
    for p in args.inputs:
        if not p.exists():
            print(f"Error: {p} not found", file=sys.stderr)
            return 1

    mode = ImageLayoutMode(args.layout or config.get("images.layout", "single"))
    output = args.output or args.inputs[0].with_name(
        config.get("output.images_name", "images.pdf")
    )

    def operation():
        images = [load_image_file(p) for p in args.inputs]
        _write_output(output, _driver().images_to_document(images, mode))
        return OperationResult(
            success=True,
            message=f"{len(images)} images → {output}",
            output_paths=[str(output)],
        )

    return _report(_run(operation, logger), "Created")


def _cmd_compress(args, logger) -> int:
    """Handle the 'compress' command."""
    from pdfbundler.services.composition import OperationResult
    from pdfbundler.services.document_library import CompressionLevel
    from pdfbundler.utils.config_manager import get_config_manager
    from pdfbundler.utils.format_utils import format_size_change

    level = CompressionLevel(args.level or get_config_manager().get("compress.level", "medium"))
    output = args.output or _default_output(args.input, "compress_prefix")

    def operation():
        data = args.input.read_bytes()
        compressed = _driver().compress(data, level)
        _write_output(output, compressed)
        return OperationResult(
            success=True,
            message=f"{format_size_change(len(data), len(compressed))} → {output}",
            output_paths=[str(output)],
        )

    return _report(_run(operation, logger), "Compressed")


def _cmd_protect(args, logger) -> int:
    """Handle the 'protect' command."""
    from pdfbundler.services.composition import OperationResult
    from pdfbundler.services.document_library import EncryptionLevel, Permissions
    from pdfbundler.utils.config_manager import get_config_manager

    encryption = EncryptionLevel(
        args.encryption or get_config_manager().get("protect.encryption", "aes")
    )
    permissions = Permissions(
        printing=not args.no_print,
        modifying=not args.no_modify,
        copying=not args.no_copy,
        annotating=not args.no_annotate,
        filling_forms=not args.no_forms,
    )
    output = args.output or _default_output(args.input, "protect_prefix")

    def operation():
        data = _driver().protect(
            args.input.read_bytes(),
            args.password,
            owner_password=args.owner_password,
            permissions=permissions,
            encryption=encryption,
        )
        _write_output(output, data)
        return OperationResult(success=True, message=str(output), output_paths=[str(output)])

    return _report(_run(operation, logger), "Protected")


def _cmd_repair(args, logger) -> int:
    """Handle the 'repair' command."""
    from pdfbundler.services.composition import OperationResult

    output = args.output or _default_output(args.input, "repair_prefix")

    def operation():
        data = args.input.read_bytes()
        driver = _driver()
        for _attempt in range(args.attempts):
            result = driver.repair(data)
            cascade = driver.session.cascade
            if result.success:
                _write_output(output, result.data)
                print(result.summary())
                return OperationResult(
                    success=True,
                    message=str(output),
                    output_paths=[str(output)],
                    pages_affected=result.page_count,
                )
            print(result.summary(), file=sys.stderr)
            print(cascade.status_message(), file=sys.stderr)
        return OperationResult(success=False, message=result.error)

    return _report(_run(operation, logger), "Repaired")


def _cmd_info(args, _logger) -> int:
    """Handle the 'info' command."""
    from pdfbundler.services.composition import friendly_error
    from pdfbundler.services.document_library import get_document_info
    from pdfbundler.utils.exceptions import PdfBundlerError
    from pdfbundler.utils.format_utils import format_file_size

    try:
        info = get_document_info(args.input)
    except (PdfBundlerError, OSError) as e:
        print(f"Error: {friendly_error(e)}", file=sys.stderr)
        return 1

    print(f"File:       {info.path}")
    print(f"Pages:      {info.page_count}")
    print(f"Size:       {format_file_size(info.file_size_bytes)} ({info.file_size_bytes:,} bytes)")
    print(f"Version:    PDF {info.pdf_version}")
    print(f"Encrypted:  {'Yes' if info.encrypted else 'No'}")
    return 0


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    level = logging.DEBUG if args.verbose else logging.WARNING
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt="%H:%M:%S", force=True)
    logger = logging.getLogger("pdfbundler.cli")

    # Validate input file existence (merge and images take 'inputs')
    if hasattr(args, "input") and args.input and not args.input.exists():
        print(f"Error: {args.input} not found", file=sys.stderr)
        return 1

    handlers = {
        "merge": _cmd_merge,
        "split": _cmd_split,
        "rotate": _cmd_rotate,
        "watermark": _cmd_watermark,
        "images": _cmd_images,
        "compress": _cmd_compress,
        "protect": _cmd_protect,
        "repair": _cmd_repair,
        "info": _cmd_info,
    }

    handler = handlers.get(args.command)
    if handler:
        try:
            return handler(args, logger)
        except ValueError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
