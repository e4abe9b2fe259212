"""Classify dictated sentences against the finding catalog.

Priority: exact pathological, exact additional, fuzzy lexicon, fallback
classifier, loose. Every miss ends as a loose finding; nothing raises.
"""

import asyncio
import logging

from ctreport.models import ClassifiedFinding, FindingKind
from ctreport.report.candidates import DEFAULT_LIMIT, build_candidates
from ctreport.report.catalog_index import CatalogIndex
from ctreport.report.llm_client import FindingClassifier
from ctreport.report.normalizer import ensure_period, normalize

logger = logging.getLogger(__name__)

TEMPLATE_SENTINEL = "valida frases normales"

_KINDS = {
    "pathological": FindingKind.PATHOLOGICAL,
    "additional": FindingKind.ADDITIONAL,
}


def split_template_sentinel(sentences: list[str]) -> tuple[list[str], bool]:
    """Strip "valida frases normales" sentences; a trailing one enables template mode."""
    template_mode = bool(sentences) and TEMPLATE_SENTINEL in normalize(sentences[-1])
    kept = [s for s in sentences if TEMPLATE_SENTINEL not in normalize(s)]
    return kept, template_mode


def _loose(sentence: str) -> ClassifiedFinding:
    return ClassifiedFinding(FindingKind.LOOSE, None, ensure_period(sentence), "loose")


def classify_locally(sentence: str, index: CatalogIndex) -> ClassifiedFinding | None:
    """Exact, then fuzzy lookup. Returns None when neither resolves the sentence."""
    n = normalize(sentence)
    hit = index.lookup_exact(n)
    if hit:
        kind, entry = hit
        return ClassifiedFinding(_KINDS[kind], entry.normal_phrase, ensure_period(sentence), "exact")

    target = index.fuzzy.get(n)
    if target is None:
        return None
    if n in target.exclusions:
        logger.debug("Fuzzy key %r excluded from %r", n, target.official)
        return None
    hit = index.lookup_exact(normalize(target.official))
    if not hit:
        logger.warning("Fuzzy official finding %r is not in the finding tables", target.official)
        return None
    kind, entry = hit
    return ClassifiedFinding(_KINDS[kind], entry.normal_phrase, ensure_period(target.official), "fuzzy")


async def _classify_with_fallback(
    sentence: str,
    index: CatalogIndex,
    fallback: FindingClassifier,
    candidate_limit: int,
) -> ClassifiedFinding:
    candidates = build_candidates(sentence, index, candidate_limit)
    try:
        verdict = await fallback.classify(sentence, candidates)
    except Exception as e:
        logger.warning("Fallback classifier failed for %r: %s", sentence, e)
        return _loose(sentence)

    if verdict is None or verdict.kind == FindingKind.LOOSE:
        return _loose(sentence)
    if not verdict.anchor or verdict.anchor not in index.anchors:
        logger.info("Fallback anchor %r not in catalog; keeping %r loose", verdict.anchor, sentence)
        return _loose(sentence)
    final_text = verdict.final_text.strip() or sentence
    return ClassifiedFinding(verdict.kind, verdict.anchor, ensure_period(final_text), "llm")


async def classify_findings(
    sentences: list[str],
    index: CatalogIndex,
    fallback: FindingClassifier | None = None,
    candidate_limit: int = DEFAULT_LIMIT,
) -> list[ClassifiedFinding]:
    """Classify each sentence, preserving input order."""
    results: list[ClassifiedFinding | None] = []
    pending = {}
    for sentence in sentences:
        sentence = sentence.strip()
        if not normalize(sentence):
            continue
        finding = classify_locally(sentence, index)
        if finding is None and fallback is not None:
            pending[len(results)] = _classify_with_fallback(sentence, index, fallback, candidate_limit)
        elif finding is None:
            finding = _loose(sentence)
        results.append(finding)

    if pending:
        resolved = await asyncio.gather(*pending.values())
        for position, finding in zip(pending.keys(), resolved):
            results[position] = finding

    for f in results:
        logger.debug("%-12s %-6s %s", f.kind.value, f.source, f.final_text)
    return results
