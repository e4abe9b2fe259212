"""Bounded catalog subset sent to the fallback classifier with each sentence."""

from dataclasses import dataclass

from ctreport.models import FindingKind
from ctreport.report.catalog_index import CatalogIndex
from ctreport.report.normalizer import normalize

DEFAULT_LIMIT = 30

# Tokens too common in report wording to say anything about relevance
_STOPWORDS = {
    "de", "del", "la", "las", "el", "los", "en", "con", "sin", "por", "para",
    "y", "o", "ni", "a", "al", "se", "no", "un", "una", "que", "su",
}


@dataclass(frozen=True)
class Candidate:
    text: str
    kind: FindingKind
    anchor: str | None

    def to_payload(self) -> dict:
        return {"texto": self.text, "tipo": self.kind.value, "frase_normal": self.anchor}


def _tokens(text: str) -> set[str]:
    return {t for t in normalize(text).split() if len(t) > 2 and t not in _STOPWORDS}


def build_candidates(sentence: str, index: CatalogIndex, limit: int = DEFAULT_LIMIT) -> list[Candidate]:
    """Rank catalog findings by word overlap with the sentence, capped at ``limit``.

    Entries sharing no word with the sentence still fill the remaining slots in
    catalog order so the classifier always sees some anchors.
    """
    words = _tokens(sentence)
    pool = [
        Candidate(entry.text, FindingKind.PATHOLOGICAL, entry.normal_phrase)
        for entry in index.pathological.values()
    ] + [
        Candidate(entry.text, FindingKind.ADDITIONAL, entry.normal_phrase)
        for entry in index.additional.values()
    ]

    scored = [(len(words & _tokens(c.text)), i, c) for i, c in enumerate(pool)]
    scored.sort(key=lambda item: (-item[0], item[1]))

    # Deduplicate while preserving rank order
    seen = set()
    unique = []
    for _, _, c in scored:
        key = normalize(c.text)
        if key not in seen:
            seen.add(key)
            unique.append(c)
    return unique[:limit]
