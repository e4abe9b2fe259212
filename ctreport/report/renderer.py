"""Render the final report text: title, technique and the findings block."""

from ctreport.models import ContrastTag, RegionTag
from ctreport.report.normalizer import normalize
from ctreport.report.sections import Section, SectionResolver
from ctreport.report.study_tags import StudyTags

FINDINGS_HEADING = "HALLAZGOS:"
TECHNIQUE_HEADING = "TECNICA:"

DEGRADED_NOTICE = (
    'La primera frase debe indicar el tipo de TC (por ejemplo: "TC de tórax con contraste").'
)

# (title stem, technique stem) per region combination
_REGION_WORDING = {
    frozenset({RegionTag.THORAX}): ("TC DE TÓRAX", "Se realiza TC de tórax"),
    frozenset({RegionTag.ABDOMEN}): ("TC DE ABDOMEN", "Se realiza TC de abdomen"),
    frozenset({RegionTag.THORAX, RegionTag.ABDOMEN}): ("TC DE TÓRAX Y ABDOMEN", "Se realiza TC de tórax y abdomen"),
    frozenset(): ("TC", "Se realiza TC"),
}

_CONTRAST_WORDING = {
    ContrastTag.WITH: (" CON CONTRASTE", " con contraste ev"),
    ContrastTag.WITHOUT: (" SIN CONTRASTE", " sin contraste ev"),
    ContrastTag.UNKNOWN: ("", ""),
}


def render_title(tags: StudyTags) -> str:
    stem, _ = _REGION_WORDING[tags.regions]
    suffix, _ = _CONTRAST_WORDING[tags.contrast]
    return f"{stem}{suffix}:"


def render_technique(tags: StudyTags) -> str:
    _, stem = _REGION_WORDING[tags.regions]
    _, suffix = _CONTRAST_WORDING[tags.contrast]
    return f"{TECHNIQUE_HEADING}\n{stem}{suffix}."


def render_findings(lines: list[str], resolver: SectionResolver, closing_text: str) -> str:
    """One paragraph per section, in the fixed Section order.

    One newline between paragraphs; one blank line between the last thorax
    paragraph and the first abdomen paragraph; the closing sentence alone, last.
    """
    closing = normalize(closing_text)
    body = resolver.sort([line for line in lines if normalize(line) != closing])

    paragraphs: list[tuple[Section, list[str]]] = []
    for line in body:
        section = resolver.section(line)
        if paragraphs and paragraphs[-1][0] == section:
            paragraphs[-1][1].append(line)
        else:
            paragraphs.append((section, [line]))

    out = []
    seen_thorax = False
    split_done = False
    for section, sentences in paragraphs:
        if section.is_abdomen and seen_thorax and not split_done:
            out.append("")
            split_done = True
        if section.is_thorax:
            seen_thorax = True
        out.append(" ".join(sentences))
    out.append(closing_text)
    return "\n".join(out)


def render_report(lines: list[str], tags: StudyTags, resolver: SectionResolver, closing_text: str) -> str:
    return "\n\n".join([
        render_title(tags),
        render_technique(tags),
        f"{FINDINGS_HEADING}\n{render_findings(lines, resolver, closing_text)}",
    ])
