"""Tests for the OpenAI fallback classifier, using httpx.MockTransport."""

import json

import httpx
import pytest

from ctreport.models import FindingKind


def _completion(content: str) -> dict:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


@pytest.mark.asyncio
async def test_openai_classifier_request_and_verdict():
    from ctreport.report.candidates import Candidate
    from ctreport.report.llm_client import OpenAIFindingClassifier

    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=_completion(json.dumps({
            "tipo": "adicional",
            "frase_normal": "Espacios pleurales libres.",
            "texto_final": "Mínima lámina de derrame pleural",
        })))

    client = OpenAIFindingClassifier("sk-test", transport=httpx.MockTransport(handler))
    candidates = [Candidate("Derrame pleural derecho.", FindingKind.PATHOLOGICAL, "Espacios pleurales libres.")]
    verdict = await client.classify("Mínima lámina de derrame", candidates)

    assert seen["url"] == "https://api.openai.com/v1/chat/completions"
    assert seen["auth"] == "Bearer sk-test"
    assert seen["body"]["model"] == "gpt-4o-mini"
    assert seen["body"]["response_format"] == {"type": "json_object"}
    user = json.loads(seen["body"]["messages"][1]["content"])
    assert user["hallazgo"] == "Mínima lámina de derrame"
    assert user["catalogo"][0] == {
        "texto": "Derrame pleural derecho.",
        "tipo": "pathological",
        "frase_normal": "Espacios pleurales libres.",
    }

    assert verdict.kind == FindingKind.ADDITIONAL
    assert verdict.anchor == "Espacios pleurales libres."
    assert verdict.final_text == "Mínima lámina de derrame pleural"


@pytest.mark.asyncio
async def test_openai_classifier_loose_verdict():
    from ctreport.report.llm_client import OpenAIFindingClassifier

    def handler(request):
        return httpx.Response(200, json=_completion('{"tipo": "suelto", "frase_normal": null, "texto_final": "x"}'))

    client = OpenAIFindingClassifier("sk-test", transport=httpx.MockTransport(handler))
    verdict = await client.classify("x", [])
    assert verdict.kind == FindingKind.LOOSE
    assert verdict.anchor is None


@pytest.mark.asyncio
async def test_openai_classifier_errors_propagate():
    from pydantic import ValidationError

    from ctreport.report.llm_client import OpenAIFindingClassifier

    def server_error(request):
        return httpx.Response(503, json={"error": "unavailable"})

    client = OpenAIFindingClassifier("sk-test", transport=httpx.MockTransport(server_error))
    with pytest.raises(httpx.HTTPStatusError):
        await client.classify("x", [])

    def garbage(request):
        return httpx.Response(200, json=_completion('{"tipo": "quizas"}'))

    client = OpenAIFindingClassifier("sk-test", transport=httpx.MockTransport(garbage))
    with pytest.raises(ValidationError):
        await client.classify("x", [])


@pytest.mark.asyncio
async def test_openai_failure_degrades_to_loose_in_classifier(full_index):
    from ctreport.report.classifier import classify_findings
    from ctreport.report.llm_client import OpenAIFindingClassifier

    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = OpenAIFindingClassifier("sk-test", transport=httpx.MockTransport(handler))
    findings = await classify_findings(["Algo no catalogado"], full_index, client)
    assert findings[0].kind == FindingKind.LOOSE
    assert findings[0].final_text == "Algo no catalogado."


def test_fallback_classifier_disabled_by_default():
    from ctreport.config import Settings
    from ctreport.report.llm_client import OpenAIFindingClassifier, get_fallback_classifier

    assert get_fallback_classifier(Settings(use_openai=False, openai_api_key="sk-test")) is None
    assert get_fallback_classifier(Settings(use_openai=True, openai_api_key="")) is None

    client = get_fallback_classifier(Settings(use_openai=True, openai_api_key="sk-test", openai_model="gpt-4o"))
    assert isinstance(client, OpenAIFindingClassifier)
    assert client.model == "gpt-4o"
