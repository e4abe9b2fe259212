"""Shared fixtures: packaged reference data and per-study indexes."""

import pytest

from ctreport.models import ClassifiedFinding, FindingKind
from ctreport.report.llm_client import FallbackVerdict, FindingClassifier


@pytest.fixture(scope="session")
def reference():
    from ctreport.reference import load_reference_data

    return load_reference_data()


@pytest.fixture
def full_index(reference):
    from ctreport.models import ContrastTag, RegionTag
    from ctreport.report.catalog_index import build_catalog_index
    from ctreport.report.study_tags import StudyTags

    tags = StudyTags(regions=frozenset({RegionTag.THORAX, RegionTag.ABDOMEN}), contrast=ContrastTag.WITH)
    return build_catalog_index(reference, tags)


@pytest.fixture
def rule_context(full_index):
    from ctreport.report.rules import RuleContext
    from ctreport.report.sections import SectionResolver

    def _make(template_mode=False, findings: list[ClassifiedFinding] | None = None):
        return RuleContext(
            resolver=SectionResolver(full_index, "Sin otros hallazgos.", findings),
            closing_text="Sin otros hallazgos.",
            normal_keys=full_index.normal_keys,
            template_mode=template_mode,
        )

    return _make


class ScriptedClassifier(FindingClassifier):
    """Returns queued verdicts (or raises queued exceptions) and records calls."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    async def classify(self, sentence, candidates):
        self.calls.append((sentence, list(candidates)))
        if not self.responses:
            return None
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def scripted_classifier():
    return ScriptedClassifier


@pytest.fixture
def verdict():
    def _make(kind: FindingKind, anchor: str | None, final_text: str) -> FallbackVerdict:
        return FallbackVerdict(kind=kind, anchor=anchor, final_text=final_text)

    return _make
