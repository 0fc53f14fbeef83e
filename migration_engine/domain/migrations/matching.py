"""
String matching helpers shared by format detection and field mapping.
"""
import re
from typing import Iterable, Optional, Tuple

from rapidfuzz.distance import Levenshtein

FUZZY_ACCEPT_THRESHOLD = 0.70
MIN_OVERLAP = 3

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def normalize_field_name(name: str) -> str:
    """Lowercase, collapse non-alphanumeric runs to ``_`` and trim underscores."""
    if not name:
        return ""
    return _NON_ALNUM.sub("_", str(name).lower()).strip("_")


def levenshtein_similarity(a: str, b: str) -> float:
    """``1 - distance / max(len)``; identical strings score 1.0."""
    if a == b:
        return 1.0
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - Levenshtein.distance(a, b) / longest


def field_similarity(a: str, b: str) -> float:
    """
    Similarity between two normalized field names.

    When one name contains the other (and the shorter is at least
    ``MIN_OVERLAP`` characters) the score is lifted to
    ``0.7 + 0.3 * shorter / longer``.
    """
    score = levenshtein_similarity(a, b)
    shorter, longer = sorted((a, b), key=len)
    if len(shorter) >= MIN_OVERLAP and shorter in longer:
        score = max(score, 0.7 + 0.3 * len(shorter) / len(longer))
    return score


def contains_with_overlap(a: str, b: str, minimum: int = MIN_OVERLAP) -> bool:
    """True when either string contains the other and the shorter has ``minimum`` chars."""
    if not a or not b:
        return False
    if min(len(a), len(b)) < minimum:
        return False
    return a in b or b in a


def best_fuzzy_match(name: str, candidates: Iterable[str]) -> Optional[Tuple[str, float]]:
    """Return the candidate with the highest similarity at or above the threshold."""
    best: Optional[Tuple[str, float]] = None
    for candidate in candidates:
        score = field_similarity(name, candidate)
        if score >= FUZZY_ACCEPT_THRESHOLD and (best is None or score > best[1]):
            best = (candidate, score)
    return best
