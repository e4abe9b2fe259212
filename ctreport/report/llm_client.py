"""Language-model fallback for dictated sentences no catalog lookup recognised.

The classifier only chooses between catalog anchors it is shown; callers
validate the returned anchor and treat any failure as a loose finding.
"""

import json
import logging
import time
from abc import ABC, abstractmethod

import httpx
from pydantic import BaseModel, ConfigDict, Field, field_validator

from ctreport.config import Settings, settings
from ctreport.models import FindingKind
from ctreport.report.candidates import Candidate

logger = logging.getLogger(__name__)

_KIND_ALIASES = {
    "patologico": FindingKind.PATHOLOGICAL,
    "patológico": FindingKind.PATHOLOGICAL,
    "adicional": FindingKind.ADDITIONAL,
    "suelto": FindingKind.LOOSE,
}

SYSTEM_PROMPT = """\
Eres un asistente de clasificación de hallazgos radiológicos de TC en español.
Clasifica el hallazgo dictado en una de estas categorías:
- "patologico": sustituye a su frase normal asociada.
- "adicional": se añade detrás de su frase normal asociada sin eliminarla.
- "suelto": no tiene frase normal asociada; se coloca antes de "Sin otros hallazgos.".

REGLAS:
1. No inventes frases normales: frase_normal debe copiarse EXACTA de catalogo[].frase_normal.
2. Si ninguna frase normal aplica, responde tipo "suelto" y frase_normal null.
3. Si el hallazgo contradice una frase normal, es "patologico".
4. Si es un matiz complementario que no la contradice, es "adicional".
5. texto_final es el hallazgo redactado como frase de informe, sin añadir datos no dictados.
6. Devuelve solo un objeto JSON con las claves: tipo, frase_normal, texto_final.
"""


class FallbackVerdict(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    kind: FindingKind = Field(alias="tipo")
    anchor: str | None = Field(default=None, alias="frase_normal")
    final_text: str = Field(default="", alias="texto_final")

    @field_validator("kind", mode="before")
    @classmethod
    def _spanish_kind(cls, v):
        if isinstance(v, str):
            return _KIND_ALIASES.get(v.strip().lower(), v.strip().lower())
        return v


class FindingClassifier(ABC):
    """Capability interface for the last-resort sentence classifier."""

    @abstractmethod
    async def classify(self, sentence: str, candidates: list[Candidate]) -> FallbackVerdict | None:
        """Return a verdict for ``sentence``, or None when there is no answer."""


class OpenAIFindingClassifier(FindingClassifier):
    """OpenAI chat-completions classifier using JSON response mode."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        base_url: str = "https://api.openai.com/v1",
        timeout: float = 20.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url
        self.timeout = timeout
        self._transport = transport

    def _build_payload(self, sentence: str, candidates: list[Candidate]) -> dict:
        return {
            "model": self.model,
            "temperature": 0,
            "response_format": {"type": "json_object"},
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {
                    "role": "user",
                    "content": json.dumps(
                        {"hallazgo": sentence, "catalogo": [c.to_payload() for c in candidates]},
                        ensure_ascii=False,
                    ),
                },
            ],
        }

    async def classify(self, sentence: str, candidates: list[Candidate]) -> FallbackVerdict | None:
        payload = self._build_payload(sentence, candidates)
        headers = {"Authorization": f"Bearer {self.api_key}"}

        logger.info("Sending sentence to %s (%d candidates)", self.model, len(candidates))
        start = time.monotonic()
        async with httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout, transport=self._transport) as client:
            response = await client.post("/chat/completions", json=payload, headers=headers)
        elapsed_ms = int((time.monotonic() - start) * 1000)
        response.raise_for_status()

        content = response.json()["choices"][0]["message"]["content"]
        if not content:
            logger.warning("Empty completion from %s after %d ms", self.model, elapsed_ms)
            return None
        verdict = FallbackVerdict.model_validate_json(content)
        logger.info("Fallback verdict %s in %d ms", verdict.kind.value, elapsed_ms)
        return verdict


def get_fallback_classifier(config: Settings | None = None) -> FindingClassifier | None:
    """Return the configured fallback classifier, or None when disabled."""
    config = config or settings
    if not config.llm_enabled:
        return None
    return OpenAIFindingClassifier(
        api_key=config.openai_api_key,
        model=config.openai_model,
        base_url=config.openai_base_url,
        timeout=config.llm_timeout_seconds,
    )
