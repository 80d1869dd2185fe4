"""
Marker Extraction - Keyword heuristics over generated text.

Each extractor returns the sentences that contain one of its markers,
matched case-insensitively on word boundaries.
"""

from __future__ import annotations

import re

__all__ = [
    "EVIDENCE_MARKERS",
    "ALTERNATIVE_MARKERS",
    "ASSUMPTION_MARKERS",
    "BIAS_MARKERS",
    "KeywordContradictionDetector",
    "extract_alternatives",
    "extract_assumptions",
    "extract_biases",
    "extract_evidence",
    "split_sentences",
]

EVIDENCE_MARKERS = [
    "evidence shows",
    "research indicates",
    "studies demonstrate",
    "data reveals",
]

ALTERNATIVE_MARKERS = [
    "alternatively",
    "another approach",
    "different perspective",
]

ASSUMPTION_MARKERS = [
    "assuming",
    "if we assume",
    "given that",
]

BIAS_MARKERS = [
    "confirmation bias",
    "availability heuristic",
    "anchoring bias",
]

_SENTENCE_END = re.compile(r"(?<=[.!?])\s+|\n+")


def _compile(markers: list[str]) -> re.Pattern[str]:
    alternation = "|".join(r"\s+".join(map(re.escape, m.split())) for m in markers)
    return re.compile(rf"\b(?:{alternation})\b", re.IGNORECASE)


_EVIDENCE = _compile(EVIDENCE_MARKERS)
_ALTERNATIVES = _compile(ALTERNATIVE_MARKERS)
_ASSUMPTIONS = _compile(ASSUMPTION_MARKERS)
_BIASES = _compile(BIAS_MARKERS)


def split_sentences(text: str) -> list[str]:
    """Split text into trimmed, non-empty sentences."""
    return [s.strip() for s in _SENTENCE_END.split(text) if s and s.strip()]


def _matching_sentences(text: str, pattern: re.Pattern[str]) -> list[str]:
    seen: set[str] = set()
    found = []
    for sentence in split_sentences(text):
        if pattern.search(sentence) and sentence not in seen:
            seen.add(sentence)
            found.append(sentence)
    return found


def extract_evidence(text: str) -> list[str]:
    """Sentences citing evidence ("evidence shows", "data reveals", ...)."""
    return _matching_sentences(text, _EVIDENCE)


def extract_alternatives(text: str) -> list[str]:
    return [f"Alternative approach identified: {s}" for s in _matching_sentences(text, _ALTERNATIVES)]


def extract_assumptions(text: str) -> list[str]:
    return [f"Assumption: {s}" for s in _matching_sentences(text, _ASSUMPTIONS)]


def extract_biases(text: str) -> list[str]:
    return [f"Potential bias: {s}" for s in _matching_sentences(text, _BIASES)]


class KeywordContradictionDetector:
    """
    Negation heuristic.

    Flags a child that contains the word "not" when its parent contains
    the word "is". A placeholder for a semantic contradiction check.
    """

    MESSAGE = "Potential negation contradiction detected"

    _NEGATION = re.compile(r"\bnot\b", re.IGNORECASE)
    _ASSERTION = re.compile(r"\bis\b", re.IGNORECASE)

    def detect(self, child_content: str, parent_content: str) -> list[str]:
        if self._NEGATION.search(child_content) and self._ASSERTION.search(parent_content):
            return [self.MESSAGE]
        return []
