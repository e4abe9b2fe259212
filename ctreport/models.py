"""Reference-data models and the per-request classification result."""

import enum
from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field, field_validator


class RegionTag(str, enum.Enum):
    THORAX = "TC-TORAX"
    ABDOMEN = "TC-ABDOMEN"


class ContrastTag(str, enum.Enum):
    WITH = "CON CONTRASTE"
    WITHOUT = "SIN CONTRASTE"
    UNKNOWN = "DESCONOCIDO"


# Contrast condition meaning "regardless of contrast"
ALWAYS = "SIEMPRE"

_CONTRAST_CONDITIONS = {ALWAYS, ContrastTag.WITH.value, ContrastTag.WITHOUT.value}

# Anchor values that mean "this finding has no normal phrase"
_NO_ANCHOR = {"", "none", "null", "null."}


class FindingKind(str, enum.Enum):
    PATHOLOGICAL = "pathological"
    ADDITIONAL = "additional"
    LOOSE = "loose"


class _Reference(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


class NormalPhrase(_Reference):
    text: str
    regions: frozenset[RegionTag]
    contrast: frozenset[str] = Field(default=frozenset({ALWAYS}))

    @field_validator("text")
    @classmethod
    def _strip_text(cls, v: str) -> str:
        return v.strip()

    @field_validator("contrast")
    @classmethod
    def _check_contrast(cls, v: frozenset[str]) -> frozenset[str]:
        conditions = frozenset(c.strip().upper() for c in v)
        unknown = conditions - _CONTRAST_CONDITIONS
        if unknown:
            raise ValueError(f"unknown contrast condition(s): {sorted(unknown)}")
        return conditions


class FindingEntry(_Reference):
    anatomical_zone: str = Field(alias="zona_anatomica")
    normal_phrase: str | None = Field(default=None, alias="frase_normal")
    pathological_phrases: tuple[str, ...] = Field(default=(), alias="hallazgos_patologicos")
    additional_phrases: tuple[str, ...] = Field(default=(), alias="hallazgos_adicionales")

    @field_validator("normal_phrase")
    @classmethod
    def _none_sentinel(cls, v: str | None) -> str | None:
        if v is None or v.strip().lower() in _NO_ANCHOR:
            return None
        return v.strip()


class FuzzyEntry(_Reference):
    normal_phrase: str | None = Field(default=None, alias="frase_normal")
    official_finding: str = Field(alias="hallazgo_oficial")
    synonyms: tuple[str, ...] = Field(default=(), alias="sinonimos")
    common_errors: tuple[str, ...] = Field(default=(), alias="errores_comunes")
    exclusions: tuple[str, ...] = Field(default=(), alias="excluir")

    @field_validator("normal_phrase")
    @classmethod
    def _none_sentinel(cls, v: str | None) -> str | None:
        if v is None or v.strip().lower() in _NO_ANCHOR:
            return None
        return v.strip()


class ReferenceData(_Reference):
    """The three immutable lookup tables shared by every request."""
    normal_phrases: tuple[NormalPhrase, ...]
    findings: tuple[FindingEntry, ...]
    fuzzy_lexicon: tuple[FuzzyEntry, ...] = ()


@dataclass
class ClassifiedFinding:
    kind: FindingKind
    anchor: str | None
    final_text: str
    source: str  # "exact", "fuzzy", "llm" or "loose"
