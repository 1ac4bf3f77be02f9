"""Sheet-music analysis package."""

from .analyzer import (
    HttpSheetAnalyzer,
    SheetAnalyzer,
    analyze_image,
    detect_image_format,
    parse_analysis,
    strip_data_uri,
)

__all__ = [
    "HttpSheetAnalyzer",
    "SheetAnalyzer",
    "analyze_image",
    "detect_image_format",
    "parse_analysis",
    "strip_data_uri",
]
