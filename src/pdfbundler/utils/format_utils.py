"""
PdfBundler - Format Utilities Module

Shared helpers for turning raw values into display strings.
"""


def format_file_size(size_bytes: int) -> str:
    """Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted size string (e.g., "1.5 MB")
    """
    if size_bytes <= 0:
        return "0 B"

    units = ["B", "KB", "MB", "GB", "TB"]

    size = float(size_bytes)
    unit_index = 0

    while size >= 1024 and unit_index < len(units) - 1:
        size /= 1024
        unit_index += 1

    if unit_index == 0:
        return f"{int(size)} {units[unit_index]}"
    elif size >= 100:
        return f"{int(size)} {units[unit_index]}"
    elif size >= 10:
        return f"{size:.1f} {units[unit_index]}"
    else:
        return f"{size:.2f} {units[unit_index]}"


def format_size_change(original_bytes: int, new_bytes: int) -> str:
    """Describe how a file size changed, e.g. "1.00 MB → 512 KB (50.0% smaller)".

    Args:
        original_bytes: Size before the operation
        new_bytes: Size after the operation

    Returns:
        Human-readable summary of the size change
    """
    summary = f"{format_file_size(original_bytes)} → {format_file_size(new_bytes)}"
    if original_bytes <= 0:
        return summary

    ratio = (original_bytes - new_bytes) / original_bytes * 100
    if ratio >= 0:
        return f"{summary} ({ratio:.1f}% smaller)"
    return f"{summary} ({-ratio:.1f}% larger)"


def parse_hex_color(value: str) -> tuple[float, float, float]:
    """Convert a "#RRGGBB" color into an (r, g, b) tuple in the 0-1 range.

    Args:
        value: Hex color string, with or without the leading '#'

    Returns:
        Tuple of red, green and blue components

    Raises:
        ValueError: If the string is not a 6-digit hex color
    """
    text = value.strip().lstrip("#")
    if len(text) != 6:
        raise ValueError(f"Invalid color '{value}'. Use the #RRGGBB format.")
    try:
        r, g, b = (int(text[i : i + 2], 16) for i in (0, 2, 4))
    except ValueError:
        raise ValueError(f"Invalid color '{value}'. Use the #RRGGBB format.") from None
    return r / 255, g / 255, b / 255
