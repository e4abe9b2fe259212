"""Infer the study regions and contrast phase from the dictation's first sentence.

Handles:
- Required "TC" marker (a first sentence without it yields no regions)
- Thorax, abdomen and abdomino-pelvic wording, "toracoabdominal" compound
- Contrast mentions, "con contraste" winning over "sin contraste"
"""

import re
from dataclasses import dataclass, field

from ctreport.models import ContrastTag, RegionTag
from ctreport.report.normalizer import normalize

# All patterns run on normalized text (no accents, no punctuation)
_STUDY_MARKER = re.compile(r"\btc\b")

_REGION_PATTERNS = [
    (re.compile(r"\btoracoabdominal\b"), (RegionTag.THORAX, RegionTag.ABDOMEN)),
    (re.compile(r"\btorax\b"), (RegionTag.THORAX,)),
    (re.compile(r"\babdomen\b|\babdominal\b|\babdominopelv|\babdomino pelvi"), (RegionTag.ABDOMEN,)),
]

_WITH_CONTRAST = re.compile(r"\bcon contraste\b|\bcon realce\b|\bcon iv\b")
_WITHOUT_CONTRAST = re.compile(r"\bsin contraste\b|\bsin iv\b|\bsin realce\b")


@dataclass(frozen=True)
class StudyTags:
    regions: frozenset[RegionTag] = field(default_factory=frozenset)
    contrast: ContrastTag = ContrastTag.UNKNOWN

    @property
    def has_study(self) -> bool:
        return bool(self.regions)


def infer_study_tags(first_sentence: str | None) -> StudyTags:
    n = normalize(first_sentence)
    if not _STUDY_MARKER.search(n):
        return StudyTags()

    regions = set()
    for pattern, tags in _REGION_PATTERNS:
        if pattern.search(n):
            regions.update(tags)

    contrast = ContrastTag.UNKNOWN
    if _WITH_CONTRAST.search(n):
        contrast = ContrastTag.WITH
    elif _WITHOUT_CONTRAST.search(n):
        contrast = ContrastTag.WITHOUT

    return StudyTags(regions=frozenset(regions), contrast=contrast)
