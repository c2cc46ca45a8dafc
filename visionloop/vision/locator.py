"""
Text Locator - pick click targets out of recognizer results.

Search terms are tried in the caller's priority order; within a term,
results are scanned in the order the recognizer emitted them. Confidence
is a hard filter applied before term order is consulted, so a preferred
term recognized below the threshold never shadows a later term.
"""
import math
from dataclasses import dataclass
from typing import Iterable, List, Optional

from ..config import DEDUPE_RADIUS_PX, DEFAULT_MAX_RESULTS
from .types import ClickTarget, TextResult


@dataclass
class MatchOptions:
    case_sensitive: bool = False
    partial_match: bool = True
    confidence_threshold: float = 0.0  # 0-100


def text_matches(candidate: str, term: str, options: MatchOptions) -> bool:
    a = candidate.strip()
    b = term.strip()
    if not a or not b:
        return False
    if not options.case_sensitive:
        a = a.casefold()
        b = b.casefold()
    if options.partial_match:
        return b in a or a in b
    return a == b


def _eligible(results: Iterable[TextResult], options: MatchOptions) -> List[TextResult]:
    return [r for r in results if r.confidence >= options.confidence_threshold]


def find_first(
    search_terms: List[str],
    results: List[TextResult],
    options: Optional[MatchOptions] = None,
) -> Optional[ClickTarget]:
    """Return the first qualifying hit, or None when nothing matches."""
    options = options or MatchOptions()
    candidates = _eligible(results, options)
    for term in search_terms:
        for result in candidates:
            if text_matches(result.text, term, options):
                return ClickTarget.from_result(result)
    return None


def find_all(
    search_terms: List[str],
    results: List[TextResult],
    options: Optional[MatchOptions] = None,
    max_results: int = DEFAULT_MAX_RESULTS,
    dedupe_radius: float = DEDUPE_RADIUS_PX,
) -> List[ClickTarget]:
    """
    Collect every match, in term-then-result order.

    Matches whose center lies within `dedupe_radius` of an already collected
    target are skipped (the same word matched by two terms, or OCR emitting
    overlapping boxes).
    """
    options = options or MatchOptions()
    candidates = _eligible(results, options)
    targets: List[ClickTarget] = []
    for term in search_terms:
        for result in candidates:
            if len(targets) >= max_results:
                return targets
            if not text_matches(result.text, term, options):
                continue
            target = ClickTarget.from_result(result)
            if any(math.hypot(t.x - target.x, t.y - target.y) <= dedupe_radius for t in targets):
                continue
            targets.append(target)
    return targets
