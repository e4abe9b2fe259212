"""Merge classified findings into the active normal-phrase template."""

import logging
from collections import defaultdict

from ctreport.models import ClassifiedFinding, FindingKind
from ctreport.report.normalizer import normalize

logger = logging.getLogger(__name__)


def integrate(
    active_template: tuple[str, ...] | list[str],
    findings: list[ClassifiedFinding],
    closing_text: str,
) -> list[str]:
    """Return the working set: template lines with findings substituted and placed.

    Pathological findings replace their anchor (last one wins), additional
    findings follow their anchor in dictation order, loose findings go right
    before the closing sentence. A finding whose anchor is not part of this
    study's template is kept as loose.
    """
    template_set = set(active_template)
    replacements: dict[str, str] = {}
    additions: dict[str, list[str]] = defaultdict(list)
    loose: list[str] = []

    for f in findings:
        if f.kind == FindingKind.LOOSE or f.anchor not in template_set:
            if f.kind != FindingKind.LOOSE:
                logger.info("Anchor %r not in active template; placing %r as loose", f.anchor, f.final_text)
            loose.append(f.final_text)
        elif f.kind == FindingKind.PATHOLOGICAL:
            if f.anchor in replacements:
                logger.info("Replacing %r again: %r overrides %r", f.anchor, f.final_text, replacements[f.anchor])
            replacements[f.anchor] = f.final_text
        else:
            additions[f.anchor].append(f.final_text)

    lines = []
    for line in active_template:
        lines.append(replacements.get(line, line))
        lines.extend(additions.get(line, ()))

    closing_key = normalize(closing_text)
    if not any(normalize(line) == closing_key for line in lines):
        lines.append(closing_text)

    closing_at = next(i for i, line in enumerate(lines) if normalize(line) == closing_key)
    return lines[:closing_at] + loose + lines[closing_at:]
