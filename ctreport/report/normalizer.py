"""Text canonicalization shared by every matching stage."""

import re
import unicodedata

# Runs of periods end a sentence unless followed by a digit ("1.5 cm"); so do newlines
_SENTENCE_SPLIT = re.compile(r"(?:\.(?!\d))+|\n+")


def normalize(text: str | None) -> str:
    """Lower-case, strip diacritics and punctuation, collapse whitespace.

    "Riñón  derecho." -> "rinon derecho"
    """
    if not text:
        return ""
    decomposed = unicodedata.normalize("NFD", text.lower())
    kept = []
    for ch in decomposed:
        if unicodedata.combining(ch):
            continue
        if ch.isalnum() or ch.isspace():
            kept.append(ch)
    return " ".join("".join(kept).split())


def split_dictation(text: str | None) -> list[str]:
    """Split a dictation into trimmed, non-empty sentences."""
    if not text:
        return []
    return [s.strip() for s in _SENTENCE_SPLIT.split(text) if s and s.strip()]


def ensure_period(text: str) -> str:
    text = text.strip()
    if not text or text.endswith((".", ":")):
        return text
    return text + "."
