"""
Text utilities for handling French spreadsheet headers with accents.

Used for column header normalization and comparison.
"""

import re
import unicodedata
from typing import Optional

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def strip_accents(text: str) -> str:
    """
    Remove accent marks, keeping base characters.

    "Désignation" → "Designation", "Catégorie" → "Categorie"
    """
    # NFD decomposition separates base chars from accents
    normalized = unicodedata.normalize("NFD", text)
    # Drop combining characters (Unicode category 'Mn')
    return "".join(c for c in normalized if unicodedata.category(c) != "Mn")


def normalize_header(header: Optional[str]) -> str:
    """
    Normalize a column header for comparison.

    - "Catégorie Fab." → "categoriefab"
    - "FS_MEGA code" → "fsmegacode"
    - "  Code 1&2&3 " → "code123"

    Args:
        header: Raw header cell (may be None or non-string)

    Returns:
        Lowercase ASCII letters and digits only ("" for empty input)
    """
    if header is None:
        return ""
    text = strip_accents(str(header)).lower()
    return _NON_ALNUM.sub("", text)
