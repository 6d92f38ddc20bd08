"""Fuzzy name matching for wiki-link targets.

Names are compared after normalisation (lowercase, runs of separator
characters collapsed to one space).  A candidate is scored, best first,
as an exact match, a case-insensitive match, a prefix match, or a fuzzy
match within a Levenshtein distance threshold.
"""

from __future__ import annotations

import logging
import posixpath
from collections.abc import Iterable

from obsidian_notion_sync.state.models import MatchResult, MatchScore

logger = logging.getLogger(__name__)

MARKDOWN_SUFFIX = ".md"


class FuzzyMatcher:
    """Scores candidate names against a link target.

    Args:
        max_distance: Fixed Levenshtein threshold.  ``0`` (the default)
            scales the threshold with the normalized target length:
            1 up to 4 characters, 2 up to 8, 3 beyond.
    """

    def __init__(self, max_distance: int = 0) -> None:
        self.max_distance = max_distance

    def match(self, target: str, candidate: str) -> tuple[MatchScore, int]:
        """Compare *target* against *candidate*.

        Returns:
            Tuple of (score, distance).  Distance is 0 for exact and
            case-insensitive matches, the length difference for prefix
            matches, and the edit distance otherwise.
        """
        target_norm = normalize_for_match(target)
        candidate_norm = normalize_for_match(candidate)

        if target_norm == candidate_norm:
            if target == candidate:
                return MatchScore.EXACT, 0
            return MatchScore.CASE_INSENSITIVE, 0

        if candidate_norm.startswith(target_norm):
            return MatchScore.PREFIX, len(candidate_norm) - len(target_norm)

        distance = levenshtein_distance(target_norm, candidate_norm)
        if distance <= self.threshold(target_norm):
            return MatchScore.FUZZY, distance
        return MatchScore.NONE, distance

    def threshold(self, normalized_target: str) -> int:
        """Return the maximum edit distance accepted for a target."""
        if self.max_distance > 0:
            return self.max_distance
        length = len(normalized_target)
        if length <= 4:
            return 1
        if length <= 8:
            return 2
        return 3

    def find_best_matches(
        self,
        target: str,
        candidates: Iterable[MatchResult],
        limit: int = 0,
    ) -> list[MatchResult]:
        """Rank *candidates* by how well their base name matches *target*.

        Both the target and each candidate path are reduced to their base
        name (final segment, ``.md`` removed) before scoring.

        Args:
            target: Link target or path.
            candidates: Documents to score; ``path`` and ``page_id`` are
                carried through to the result.
            limit: Maximum number of results; ``<= 0`` means unlimited.

        Returns:
            Non-``NONE`` matches sorted by score descending, then distance
            ascending.  Ties keep candidate order.
        """
        target_name = normalize_for_match(extract_name(target))
        matches: list[MatchResult] = []

        for candidate in candidates:
            name = extract_name(candidate.path)
            score, distance = self.match(target_name, normalize_for_match(name))
            if score == MatchScore.NONE:
                continue
            matches.append(
                candidate.model_copy(
                    update={"name": name, "score": score, "distance": distance}
                )
            )

        matches.sort(key=lambda m: (-m.score, m.distance))

        if limit > 0:
            matches = matches[:limit]
        return matches


def normalize_for_match(text: str) -> str:
    """Lowercase *text* and collapse non-alphanumeric runs to one space."""
    parts: list[str] = []
    previous_space = False
    for char in text.lower():
        if char.isalnum():
            parts.append(char)
            previous_space = False
        elif not previous_space:
            parts.append(" ")
            previous_space = True
    return "".join(parts).strip()


def extract_name(path: str) -> str:
    """Return the final path segment of *path* without a ``.md`` suffix."""
    return posixpath.basename(path).removesuffix(MARKDOWN_SUFFIX)


def levenshtein_distance(s1: str, s2: str) -> int:
    """Edit distance between two strings, counted in code points.

    Insertions, deletions and substitutions each cost 1.  Uses two rolling
    rows, so memory is linear in the length of *s2*.
    """
    if s1 == s2:
        return 0
    if not s1:
        return len(s2)
    if not s2:
        return len(s1)

    previous = list(range(len(s2) + 1))
    current = [0] * (len(s2) + 1)

    for i, c1 in enumerate(s1, start=1):
        current[0] = i
        for j, c2 in enumerate(s2, start=1):
            cost = 0 if c1 == c2 else 1
            current[j] = min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + cost,
            )
        previous, current = current, previous

    return previous[len(s2)]
