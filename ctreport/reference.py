"""Load the normal-phrase, finding and fuzzy-lexicon tables from JSON.

Usage:
    from ctreport.reference import get_reference_data

    reference = get_reference_data()
"""

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from ctreport.config import settings
from ctreport.models import FindingEntry, FuzzyEntry, NormalPhrase, ReferenceData

logger = logging.getLogger(__name__)

PACKAGED_DATA_DIR = Path(__file__).resolve().parent / "data"

NORMAL_PHRASES_FILE = "normal_phrases.json"
FINDINGS_FILE = "findings.json"
FUZZY_LEXICON_FILE = "fuzzy_lexicon.json"

_REFERENCE: ReferenceData | None = None


class ReferenceDataError(Exception):
    """Raised when a reference table is missing or does not validate."""


def _read_table(path: Path) -> list[dict]:
    try:
        rows = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise ReferenceDataError(f"Reference table not found: {path}") from e
    except json.JSONDecodeError as e:
        raise ReferenceDataError(f"Invalid JSON in {path}: {e}") from e
    if not isinstance(rows, list):
        raise ReferenceDataError(f"{path} must contain a JSON array")
    return rows


def load_reference_data(data_dir: Path | None = None) -> ReferenceData:
    """Read and validate the three tables from ``data_dir``.

    The fuzzy lexicon is optional; the other two tables are required.
    """
    data_dir = Path(data_dir) if data_dir else PACKAGED_DATA_DIR
    try:
        normals = [NormalPhrase.model_validate(r) for r in _read_table(data_dir / NORMAL_PHRASES_FILE)]
        findings = [FindingEntry.model_validate(r) for r in _read_table(data_dir / FINDINGS_FILE)]
        fuzzy_path = data_dir / FUZZY_LEXICON_FILE
        fuzzy = [FuzzyEntry.model_validate(r) for r in _read_table(fuzzy_path)] if fuzzy_path.exists() else []
    except ValidationError as e:
        raise ReferenceDataError(f"Invalid reference data in {data_dir}: {e}") from e

    logger.info(
        "Loaded reference data from %s (%d normal phrases, %d finding groups, %d fuzzy entries)",
        data_dir, len(normals), len(findings), len(fuzzy),
    )
    return ReferenceData(
        normal_phrases=tuple(normals),
        findings=tuple(findings),
        fuzzy_lexicon=tuple(fuzzy),
    )


def get_reference_data() -> ReferenceData:
    """Return the process-wide reference tables. Cached after first load."""
    global _REFERENCE
    if _REFERENCE is None:
        _REFERENCE = load_reference_data(settings.data_dir)
    return _REFERENCE
