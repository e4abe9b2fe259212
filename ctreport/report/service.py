"""Dictation -> report pipeline.

Usage:
    from ctreport.report.service import generate_report

    text = generate_report("TC de tórax con contraste. Nódulo pulmonar derecho de 8mm.")
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field

from ctreport.config import Settings, settings
from ctreport.models import ClassifiedFinding, FindingKind, ReferenceData
from ctreport.reference import get_reference_data
from ctreport.report.catalog_index import CatalogIndex, build_catalog_index
from ctreport.report.classifier import classify_findings, split_template_sentinel
from ctreport.report.integrator import integrate
from ctreport.report.llm_client import FindingClassifier, get_fallback_classifier
from ctreport.report.normalizer import split_dictation
from ctreport.report.renderer import DEGRADED_NOTICE, render_report
from ctreport.report.rules import RuleContext, apply_redaction_rules
from ctreport.report.sections import SectionResolver
from ctreport.report.study_tags import StudyTags, infer_study_tags

logger = logging.getLogger(__name__)

_UNSET = object()


class ReportGenerationError(Exception):
    """The report could not be generated."""

    def __init__(self, message: str = "No se pudo generar el informe"):
        super().__init__(message)


@dataclass
class ReportPlan:
    tags: StudyTags
    template_mode: bool
    index: CatalogIndex
    findings: list[ClassifiedFinding] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "regions": sorted(r.value for r in self.tags.regions),
            "contrast": self.tags.contrast.value,
            "template_mode": self.template_mode,
            "replaces": [
                {"target_normal": f.anchor, "new_line": f.final_text, "source": f.source}
                for f in self.findings if f.kind == FindingKind.PATHOLOGICAL
            ],
            "adds": [
                {"after_normal": f.anchor, "new_line": f.final_text, "source": f.source}
                for f in self.findings if f.kind == FindingKind.ADDITIONAL
            ],
            "loose": [f.final_text for f in self.findings if f.kind == FindingKind.LOOSE],
        }


async def _plan(
    dictation: str,
    reference: ReferenceData,
    fallback: FindingClassifier | None,
    config: Settings,
) -> ReportPlan:
    sentences = split_dictation(dictation)
    first, rest = (sentences[0], sentences[1:]) if sentences else ("", [])

    tags = infer_study_tags(first)
    index = build_catalog_index(reference, tags)
    rest, template_mode = split_template_sentinel(rest)
    findings = await classify_findings(rest, index, fallback, config.llm_candidate_limit)
    return ReportPlan(tags=tags, template_mode=template_mode, index=index, findings=findings)


def _resolve(reference, fallback, config) -> tuple[ReferenceData, FindingClassifier | None, Settings]:
    config = config or settings
    reference = reference or get_reference_data()
    if fallback is _UNSET:
        fallback = get_fallback_classifier(config)
    return reference, fallback, config


async def build_plan(
    dictation: str,
    *,
    reference: ReferenceData | None = None,
    fallback: FindingClassifier | None = _UNSET,
    config: Settings | None = None,
) -> ReportPlan:
    """Classify a dictation without rendering it."""
    reference, fallback, config = _resolve(reference, fallback, config)
    try:
        return await _plan(dictation or "", reference, fallback, config)
    except Exception as e:
        logger.exception("Planning failed")
        raise ReportGenerationError() from e


async def generate_report_async(
    dictation: str,
    *,
    reference: ReferenceData | None = None,
    fallback: FindingClassifier | None = _UNSET,
    config: Settings | None = None,
) -> str:
    """Turn a dictation into report text.

    ``fallback`` defaults to the configured language-model classifier; pass
    None to run purely on the catalogs.
    """
    reference, fallback, config = _resolve(reference, fallback, config)
    start = time.monotonic()
    try:
        plan = await _plan(dictation or "", reference, fallback, config)
        working = integrate(plan.index.active_template, plan.findings, config.closing_text)
        resolver = SectionResolver(plan.index, config.closing_text, plan.findings)
        ctx = RuleContext(
            resolver=resolver,
            closing_text=config.closing_text,
            normal_keys=plan.index.normal_keys,
            template_mode=plan.template_mode,
        )
        working = apply_redaction_rules(working, ctx)
        report = render_report(working, plan.tags, resolver, config.closing_text)
    except Exception as e:
        logger.exception("Report generation failed")
        raise ReportGenerationError() from e

    if not plan.tags.has_study:
        logger.warning("Dictation does not start with a study type; returning degraded report")
        report = f"{DEGRADED_NOTICE}\n\n{report}"

    elapsed_ms = int((time.monotonic() - start) * 1000)
    logger.info(
        "Generated report: %d findings (%d loose), template_mode=%s, %d ms",
        len(plan.findings),
        sum(1 for f in plan.findings if f.kind == FindingKind.LOOSE),
        plan.template_mode,
        elapsed_ms,
    )
    return report


def generate_report(dictation: str, **kwargs) -> str:
    """Synchronous wrapper around :func:`generate_report_async`."""
    return asyncio.run(generate_report_async(dictation, **kwargs))
