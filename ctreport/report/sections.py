"""Anatomical sections of the findings block and the keyword table that assigns them.

Handles:
- Fixed clinical order of sections (thorax first, then abdomen)
- Keyword rules on normalized text, first matching rule wins
- Literal anchor resolution: a sentence that is, or is anchored to, a
  template phrase takes that phrase's section
"""

import enum
import re
from dataclasses import dataclass

from ctreport.models import ClassifiedFinding, FindingKind
from ctreport.report.catalog_index import CatalogIndex
from ctreport.report.normalizer import normalize


class Section(str, enum.Enum):
    THORAX_MEDIASTINUM = "thorax.mediastinum"
    THORAX_VASCULAR = "thorax.vascular"
    THORAX_LYMPH_NODES = "thorax.lymphNodes"
    THORAX_PARENCHYMA = "thorax.parenchyma"
    THORAX_PLEURA = "thorax.pleura"
    LIVER_PARENCHYMA = "abdomen.liver.parenchyma"
    LIVER_VESSELS = "abdomen.liver.vessels"
    BILIARY = "abdomen.biliary"
    SPLEEN_PANCREAS_ADRENAL = "abdomen.spleenPancreasAdrenal"
    RENAL = "abdomen.renal"
    ABDOMEN_LYMPH_NODES = "abdomen.lymphNodes"
    PERITONEUM = "abdomen.peritoneum"
    UNCLASSIFIED = "unclassified"
    CLOSING = "closing"

    @property
    def rank(self) -> int:
        return _SECTION_ORDER[self]

    @property
    def is_thorax(self) -> bool:
        return self.value.startswith("thorax.")

    @property
    def is_abdomen(self) -> bool:
        return self.value.startswith("abdomen.")


_SECTION_ORDER = {section: i for i, section in enumerate(Section)}


@dataclass(frozen=True)
class SectionRule:
    section: Section
    subkind: int
    patterns: tuple[re.Pattern, ...]

    def matches(self, normalized: str) -> bool:
        return all(p.search(normalized) for p in self.patterns)


def _rule(section: Section, subkind: int, *patterns: str) -> SectionRule:
    return SectionRule(section, subkind, tuple(re.compile(p) for p in patterns))


_NODES = r"\b(?:adenopat|ganglio|linfaden)"
_URINARY = r"\brinon|renal|urinari|ureter|nefr|pielo|urotel"

# Subkind orders sentences inside one paragraph (e.g. right kidney before left).
# Lymph-node rules precede organ rules: "adenopatias mediastinicas" belongs
# with the nodes, not the mediastinum. Adrenal precedes renal ("suprarrenal").
SECTION_RULES: tuple[SectionRule, ...] = (
    _rule(Section.THORAX_LYMPH_NODES, 0, _NODES, r"\b(?:mediastin|hiliar|hilio|paratraque|subcarin)"),
    _rule(Section.THORAX_LYMPH_NODES, 1, _NODES, r"\b(?:axilar|supraclavicul)"),
    _rule(Section.ABDOMEN_LYMPH_NODES, 0, _NODES, r"\b(?:intraabdominal|abdominal|retroperitone|mesenteric|paraaortic)"),
    _rule(Section.ABDOMEN_LYMPH_NODES, 1, _NODES, r"\b(?:pelvic|inguinal|iliac)"),
    _rule(Section.THORAX_VASCULAR, 0, r"\barteria pulmonar|\btep\b|tromboembol|defectos? de reple|hipertension pulmonar"),
    _rule(Section.THORAX_MEDIASTINUM, 0, r"\bmediastin|\bbocio\b|tiroid|\besofag|\btraque|pericardi|\bhernia de hiato\b|\bhiatal\b|aortocoronari"),
    _rule(Section.THORAX_PLEURA, 0, r"\bpleura|\bneumotorax\b"),
    _rule(
        Section.THORAX_PARENCHYMA, 0,
        r"\bparenquima pulmonar|\bpulmon|\bcondensaci|\benfisema|\bvidrio\b|atelectasi|bronqui"
        r"|intersticial|reticulaci|\bseptal|linfangitis|granuloma|fibrocicatricial",
    ),
    _rule(Section.LIVER_VESSELS, 0, r"\bvenas? porta\b|\bportal|suprahepatic|esplenoportal"),
    _rule(Section.BILIARY, 0, r"\bvia biliar|\bvesicula|coledoc|colelitiasis|colecist|litiasis biliar"),
    _rule(Section.LIVER_PARENCHYMA, 0, r"\bhigado\b|hepat|esteatosis"),
    _rule(Section.SPLEEN_PANCREAS_ADRENAL, 0, r"\bbazo\b|esplen"),
    _rule(Section.SPLEEN_PANCREAS_ADRENAL, 1, r"pancrea|wirsung"),
    _rule(Section.SPLEEN_PANCREAS_ADRENAL, 2, r"suprarrenal|adrenal"),
    _rule(Section.RENAL, 1, _URINARY, r"izquierd"),
    _rule(Section.RENAL, 0, _URINARY),
    _rule(Section.PERITONEUM, 0, r"coleccion|neumoperitoneo|liquido libre|ascitis|peritone"),
)


def classify_section(sentence: str) -> tuple[Section, int]:
    """Keyword heuristic: (section, subkind) of the first matching rule."""
    n = normalize(sentence)
    for rule in SECTION_RULES:
        if rule.matches(n):
            return rule.section, rule.subkind
    return Section.UNCLASSIFIED, 0


class SectionResolver:
    """Assign sections by literal anchor first, keyword rules second."""

    def __init__(
        self,
        index: CatalogIndex,
        closing_text: str,
        findings: list[ClassifiedFinding] | None = None,
    ):
        self._closing = normalize(closing_text)
        self._template = {normalize(line): line for line in index.active_template}
        self._anchor_of: dict[str, str] = {}
        for entry in (*index.pathological.values(), *index.additional.values()):
            if entry.normal_phrase:
                self._anchor_of[normalize(entry.text)] = entry.normal_phrase
        for f in findings or ():
            if f.anchor and f.kind != FindingKind.LOOSE:
                self._anchor_of[normalize(f.final_text)] = f.anchor

    def placement(self, sentence: str) -> tuple[Section, int]:
        n = normalize(sentence)
        if n == self._closing:
            return Section.CLOSING, 0
        anchor = self._template.get(n) or self._anchor_of.get(n)
        if anchor:
            placement = classify_section(anchor)
            if placement[0] != Section.UNCLASSIFIED:
                return placement
        return classify_section(sentence)

    def section(self, sentence: str) -> Section:
        return self.placement(sentence)[0]

    def sort(self, lines: list[str]) -> list[str]:
        """Stable sort into the fixed Section order, subkind second."""
        keyed = []
        for i, line in enumerate(lines):
            section, subkind = self.placement(line)
            keyed.append(((section.rank, subkind, i), line))
        keyed.sort(key=lambda item: item[0])
        return [line for _, line in keyed]
