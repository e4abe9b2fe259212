"""Consistency checks across the three reference tables."""

from ctreport.models import ReferenceData
from ctreport.report.normalizer import normalize


def check_reference_data(reference: ReferenceData) -> list[str]:
    """Return human-readable descriptions of every inconsistency found."""
    problems = []
    normal_texts = {normalize(p.text) for p in reference.normal_phrases}

    finding_anchor: dict[str, str | None] = {}
    for entry in reference.findings:
        if entry.normal_phrase and normalize(entry.normal_phrase) not in normal_texts:
            problems.append(f"{entry.anatomical_zone}: anchor {entry.normal_phrase!r} is not a normal phrase")
        for phrase in (*entry.pathological_phrases, *entry.additional_phrases):
            key = normalize(phrase)
            if key in finding_anchor and finding_anchor[key] != entry.normal_phrase:
                problems.append(f"{phrase!r} is listed under two different anchors")
            finding_anchor[key] = entry.normal_phrase

    fuzzy_owner: dict[str, str] = {}
    for entry in reference.fuzzy_lexicon:
        official_key = normalize(entry.official_finding)
        if official_key not in finding_anchor:
            problems.append(f"fuzzy official finding {entry.official_finding!r} is not in the finding tables")
        elif entry.normal_phrase and entry.normal_phrase != finding_anchor[official_key]:
            problems.append(
                f"fuzzy official finding {entry.official_finding!r} names anchor {entry.normal_phrase!r}"
                f" but the finding tables use {finding_anchor[official_key]!r}"
            )
        variants = {normalize(v) for v in (entry.official_finding, *entry.synonyms, *entry.common_errors)}
        for key in variants:
            owner = fuzzy_owner.get(key)
            if owner is not None and owner != entry.official_finding:
                problems.append(f"fuzzy key {key!r} maps to both {owner!r} and {entry.official_finding!r}")
            fuzzy_owner[key] = entry.official_finding
        for excluded in entry.exclusions:
            if normalize(excluded) not in variants:
                problems.append(
                    f"exclusion {excluded!r} of {entry.official_finding!r} is not one of its variants"
                )
    return problems
