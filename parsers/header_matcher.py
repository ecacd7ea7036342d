"""
Column header to canonical field matching.

Each dataset has a synonym dictionary (canonical field -> known header
spellings). Matching compares normalized text only, so accents, case,
spaces and punctuation in spreadsheet headers do not matter.
"""

from typing import Optional

import structlog

from models.rows import DatasetType, REQUIRED_FIELDS, dataset_fields
from utils.text_utils import normalize_header

logger = structlog.get_logger(__name__)


MAPPING_SYNONYMS: dict[str, list[str]] = {
    "segment": ["segment", "seg", "segcir", "segmentcir"],
    "marque": ["marque", "brand", "fabricant", "maker", "vendor", "supplier", "fournisseur"],
    "cat_fab": [
        "catfab", "cat_fab", "cat", "categorie", "category", "famillefabricant",
        "family", "familycode", "productfamily", "famille_fabricant",
    ],
    "cat_fab_l": [
        "description", "libelle", "libellel", "designation", "desc", "catlibelle",
        "productdescription", "familydescription",
    ],
    "strategiq": [
        "strategiq", "strategique", "isstrategic", "strategic", "strat",
        "strategique_flag", "strategic_flag",
    ],
    "fsmega": ["fsmega", "mega", "megafamille", "fsm", "megacode", "fsmegacode", "fs_mega", "fs_mega_code"],
    "fsfam": ["fsfam", "famille", "fam", "fsf", "famillecode", "fsfamcode", "fs_fam", "fs_fam_code", "famille_code"],
    "fssfa": [
        "fssfa", "ssfamille", "ssfam", "ssf", "sousfamille", "ssfamillecode",
        "fssfacode", "fs_sfa", "fs_sfa_code", "sous_famille_code",
    ],
    "codif_fair": ["codiffair", "codif", "fair", "codefair", "codification_fair"],
}

CLASSIFICATION_SYNONYMS: dict[str, list[str]] = {
    "fsmega_code": ["fsmegacode", "fsmega", "megacode", "fsm", "fs_mega_code", "fs_mega", "mega", "code fsmega"],
    "fsmega_designation": [
        "fsmegadesignation", "megadesignation", "fsmegalibelle", "fsmegalib",
        "fs_mega_designation", "mega_designation", "designation fsmega",
    ],
    "fsfam_code": ["fsfamcode", "fsfam", "famillecode", "fs_fam_code", "fs_fam", "fam", "famille_code", "famcode", "code fsfam"],
    "fsfam_designation": [
        "fsfamdesignation", "familledesignation", "fsfamlibelle", "fsfamlib",
        "fs_fam_designation", "fam_designation", "famille_designation", "designation fsfam",
    ],
    "fssfa_code": [
        "fssfacode", "fssfa", "sousfamillecode", "ssf", "fs_sfa_code", "fs_sfa",
        "sfa", "sous_famille_code", "sfacode", "code fssfa",
    ],
    "fssfa_designation": [
        "fssfadesignation", "sousfamilledesignation", "fssfalibelle", "fssfalib",
        "fs_sfa_designation", "sfa_designation", "sous_famille_designation", "designation fssfa",
    ],
    "combined_code": [
        "combinedcode", "codecombine", "code", "combined", "code_combine", "codecombined",
        "fullcode", "code123", "code 1 2 3", "code1&2&3",
    ],
    "combined_designation": [
        "combineddesignation", "designationcombinee", "libellecombine", "combined_designation",
        "designation_combinee", "fulldesignation", "designation123", "designation 1 2 3",
        "designation1&2&3",
    ],
}

SYNONYMS: dict[DatasetType, dict[str, list[str]]] = {
    DatasetType.MAPPING: MAPPING_SYNONYMS,
    DatasetType.CLASSIFICATION: CLASSIFICATION_SYNONYMS,
}


def guess_mapping(headers: list[str], dataset_type: DatasetType) -> dict[str, str]:
    """
    Guess which header feeds each canonical field.

    For every field of the dataset's dictionary, the first header (in file
    order) whose normalized text equals one of the field's normalized
    synonyms wins. Fields without a match are left out.

    Args:
        headers: Header row of the uploaded file
        dataset_type: Dataset the file is imported into

    Returns:
        {field: header} using the headers exactly as they appear in the file
    """
    normalized_headers = [(header, normalize_header(header)) for header in headers]
    result: dict[str, str] = {}

    for field, synonyms in SYNONYMS[DatasetType(dataset_type)].items():
        candidates = {normalize_header(s) for s in synonyms}
        for raw, norm in normalized_headers:
            if norm and norm in candidates:
                result[field] = raw
                break

    return result


def auto_map_fields(
    headers: list[str],
    dataset_type: DatasetType,
    template_mapping: Optional[dict[str, str]] = None,
) -> dict[str, str]:
    """
    Initial column mapping for a freshly uploaded file.

    A non-empty template mapping takes precedence over guessing; its entries
    pointing at headers absent from the file are dropped.
    """
    if template_mapping:
        present = set(headers)
        mapping = {f: h for f, h in template_mapping.items() if h in present}
        logger.debug(
            "mapping_from_template",
            kept=len(mapping),
            dropped=len(template_mapping) - len(mapping),
        )
        return mapping

    mapping = guess_mapping(headers, dataset_type)
    logger.debug("mapping_guessed", dataset_type=str(dataset_type), matched=len(mapping))
    return mapping


def missing_required_fields(mapping: dict[str, str], dataset_type: DatasetType) -> list[str]:
    """Required fields that have no source header."""
    return [f for f in REQUIRED_FIELDS[DatasetType(dataset_type)] if not mapping.get(f)]


def unknown_fields(mapping: dict[str, str], dataset_type: DatasetType) -> list[str]:
    """Mapping keys that are not canonical fields of the dataset."""
    known = set(dataset_fields(DatasetType(dataset_type)))
    return [f for f in mapping if f not in known]
