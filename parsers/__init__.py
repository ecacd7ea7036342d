"""
Import file parsers and header matching.
"""

from parsers.import_file_parser import (
    read_import_file,
    ParsedSheet,
)
from parsers.header_matcher import (
    guess_mapping,
    auto_map_fields,
    missing_required_fields,
    unknown_fields,
)

__all__ = [
    "read_import_file",
    "ParsedSheet",
    "guess_mapping",
    "auto_map_fields",
    "missing_required_fields",
    "unknown_fields",
]
