"""Normalized string similarity used to match free text against node names."""

from __future__ import annotations

import re

CONTAINMENT_SCORE = 0.85

_TYPE_SUFFIX_RE = re.compile(r"\b(screen|page|feature|view|component|module)\b", re.IGNORECASE)
_NON_ALNUM_RE = re.compile(r"[^a-z0-9\s]")
_WHITESPACE_RE = re.compile(r"\s+")


def normalize(value: str) -> str:
    """Lowercase, drop type words such as "Screen" or "Feature", strip punctuation."""
    value = _TYPE_SUFFIX_RE.sub("", value.lower())
    value = _NON_ALNUM_RE.sub("", value)
    return _WHITESPACE_RE.sub(" ", value).strip()


def levenshtein(a: str, b: str) -> int:
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            cost = 0 if ca == cb else 1
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


def similarity(a: str, b: str) -> float:
    """Symmetric similarity in [0, 1].

    Identical non-empty normalized strings score 1.0. When either side
    normalizes to nothing, only an exact case-insensitive match counts.
    Containment of one in the other scores 0.85, anything else is
    ``1 - edit_distance / longest_length``.
    """
    na = normalize(a)
    nb = normalize(b)

    # Non-Latin names and bare type words normalize to nothing.
    if not na or not nb:
        raw_a = a.strip().casefold()
        return 1.0 if raw_a and raw_a == b.strip().casefold() else 0.0
    if na == nb:
        return 1.0
    if na in nb or nb in na:
        return CONTAINMENT_SCORE

    return 1 - levenshtein(na, nb) / max(len(na), len(nb))
