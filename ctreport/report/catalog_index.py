"""Per-request lookup structures built from the immutable reference tables."""

import logging
from dataclasses import dataclass, field

from ctreport.models import ALWAYS, ReferenceData
from ctreport.report.normalizer import normalize
from ctreport.report.study_tags import StudyTags

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IndexedFinding:
    zone: str
    normal_phrase: str | None
    text: str


@dataclass(frozen=True)
class FuzzyTarget:
    official: str
    exclusions: frozenset[str]  # normalized


@dataclass(frozen=True)
class CatalogIndex:
    active_template: tuple[str, ...] = ()
    pathological: dict[str, IndexedFinding] = field(default_factory=dict)
    additional: dict[str, IndexedFinding] = field(default_factory=dict)
    fuzzy: dict[str, FuzzyTarget] = field(default_factory=dict)
    anchors: frozenset[str] = frozenset()
    normal_keys: frozenset[str] = frozenset()

    def lookup_exact(self, key: str) -> tuple[str, IndexedFinding] | None:
        """Return ("pathological" | "additional", entry) for a normalized key."""
        if key in self.pathological:
            return "pathological", self.pathological[key]
        if key in self.additional:
            return "additional", self.additional[key]
        return None


def select_template(reference: ReferenceData, tags: StudyTags) -> tuple[str, ...]:
    """Normal phrases whose regions and contrast conditions match the study."""
    selected = []
    for phrase in reference.normal_phrases:
        if not phrase.regions & tags.regions:
            continue
        if ALWAYS in phrase.contrast or tags.contrast.value in phrase.contrast:
            selected.append(phrase.text)
    return tuple(selected)


def build_fuzzy_index(reference: ReferenceData) -> dict[str, FuzzyTarget]:
    index: dict[str, FuzzyTarget] = {}
    for entry in reference.fuzzy_lexicon:
        target = FuzzyTarget(
            official=entry.official_finding,
            exclusions=frozenset(normalize(e) for e in entry.exclusions),
        )
        for variant in (entry.official_finding, *entry.synonyms, *entry.common_errors):
            key = normalize(variant)
            if not key:
                continue
            previous = index.get(key)
            if previous is not None and previous.official != target.official:
                logger.warning(
                    "Fuzzy key %r maps to both %r and %r; keeping the latter",
                    key, previous.official, target.official,
                )
            index[key] = target
    return index


def build_catalog_index(reference: ReferenceData, tags: StudyTags) -> CatalogIndex:
    active_template = select_template(reference, tags)

    pathological: dict[str, IndexedFinding] = {}
    additional: dict[str, IndexedFinding] = {}
    anchors = set(active_template)
    for entry in reference.findings:
        if entry.normal_phrase:
            anchors.add(entry.normal_phrase)
        for phrase in entry.pathological_phrases:
            pathological[normalize(phrase)] = IndexedFinding(entry.anatomical_zone, entry.normal_phrase, phrase)
        for phrase in entry.additional_phrases:
            additional[normalize(phrase)] = IndexedFinding(entry.anatomical_zone, entry.normal_phrase, phrase)

    normal_keys = frozenset(normalize(p.text) for p in reference.normal_phrases)

    logger.debug(
        "Catalog index: %d template lines, %d pathological, %d additional",
        len(active_template), len(pathological), len(additional),
    )
    return CatalogIndex(
        active_template=active_template,
        pathological=pathological,
        additional=additional,
        fuzzy=build_fuzzy_index(reference),
        anchors=frozenset(anchors),
        normal_keys=normal_keys,
    )
