# circa_match/matcher.py
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from numbers import Real
from typing import Any, Callable, List, Mapping, Optional, Union

from . import config, preprocessing as pp
from .diagnostics import format_near_misses, near_misses
from .index import Candidate, FactorIndex, IndexCache
from .models import EmissionEntry, MatchResult, MatchStatus

logger = logging.getLogger(__name__)

EntryLike = Union[EmissionEntry, Mapping[str, Any]]


def _get(entry: Any, name: str) -> Any:
    if isinstance(entry, Mapping):
        return entry.get(name)
    return getattr(entry, name, None)


# ---------- validation ----------
def validate_entry(entry: Any) -> List[str]:
    """Problems with an entry; empty list means it can be matched."""
    if entry is None or not (isinstance(entry, Mapping) or isinstance(entry, EmissionEntry)):
        return ["entry must be an object"]

    problems = []
    for name in ("category", "unit"):
        v = _get(entry, name)
        if not isinstance(v, str) or not v.strip():
            problems.append(f"missing {name}")

    scope = _get(entry, "scope")
    if isinstance(scope, bool) or not isinstance(scope, (Real, str)) or not pp.normalize_scope(scope):
        problems.append("missing scope")

    q = _get(entry, "quantity")
    if isinstance(q, bool) or not isinstance(q, Real):
        problems.append("quantity must be a number")
    elif not math.isfinite(q) or q < 0:
        problems.append("quantity must be a finite, non-negative number")
    return problems


# ---------- boosting ----------
@dataclass(frozen=True)
class Boosted:
    candidate: Candidate
    boosted_score: float

    @property
    def score(self) -> float:
        return self.candidate.score


def boost(candidates: List[Candidate], unit: str, scope: str) -> List[Boosted]:
    """
    Lower is better. Exact unit and exact scope agreement each subtract a
    fixed amount; sort is stable so equal scores keep search order.
    """
    out = []
    for c in candidates:
        b = c.score
        if c.item.unit == unit:
            b -= config.UNIT_BOOST
        if c.item.scope == scope:
            b -= config.SCOPE_BOOST
        out.append(Boosted(c, b))
    return sorted(out, key=lambda x: x.boosted_score)


# ---------- matcher ----------
class FactorMatcher:
    """
    Resolves one activity entry to a MatchResult against a source's index.
    Expected failures come back as results; store errors propagate.
    """

    def __init__(self, index_provider: Callable[[], Optional[FactorIndex]],
                 source: Optional[str] = None):
        self._index_provider = index_provider
        self.source = source or config.DEFAULT_SOURCE

    @classmethod
    def for_store(cls, store, source: Optional[str] = None,
                  cache: Optional[IndexCache] = None) -> "FactorMatcher":
        source = source or config.DEFAULT_SOURCE
        cache = cache or IndexCache.for_store(store)
        return cls(lambda: cache.get(source), source)

    def match(self, entry: EntryLike) -> MatchResult:
        problems = validate_entry(entry)
        if problems:
            return MatchResult(
                MatchStatus.VALIDATION_FAILURE,
                log=f"Invalid input: {', '.join(problems)}",
            )

        category, unit, scope = _get(entry, "category"), _get(entry, "unit"), _get(entry, "scope")
        quantity = _get(entry, "quantity")
        q_cat = pp.normalize(category)
        q_unit = pp.normalize_unit(unit)
        q_scope = pp.normalize_scope(scope)

        index = self._index_provider()
        if index is None or len(index) == 0:
            return MatchResult(
                MatchStatus.INDEX_UNAVAILABLE,
                log=f"Emission factor index not available for source {self.source!r}",
            )

        candidates = index.search(pp.compose(q_cat, q_unit, q_scope))
        if not candidates:
            logger.debug("No composite hit for %r, retrying on category alone", q_cat)
            candidates = index.search(q_cat)

        if not candidates:
            misses = near_misses(index, q_cat)
            logger.info("No emission factor for %r/%r/scope %r (%s)", category, unit, scope, self.source)
            return MatchResult(
                MatchStatus.NO_MATCH,
                log=(f'No matching emission factor for input category "{category}", '
                     f'unit "{unit}", scope "{scope}". '
                     f"Top {len(misses)} closest matches: {format_near_misses(misses)}"),
                near_misses=misses,
            )

        best = boost(candidates, q_unit, q_scope)[0]
        factor = best.candidate.factor
        if not factor.eligible:
            return MatchResult(
                MatchStatus.INELIGIBLE_MATCH,
                log=(f'Matched emission factor ID:{factor.id} is missing its conversion '
                     f'factor for category "{category}"'),
                score=best.score,
            )

        return MatchResult(
            MatchStatus.SUCCESS,
            matched_factor=factor,
            calculated_emissions=quantity * factor.conversion_factor,
            log=(f'Matched "{category}" to ID:{factor.id} "{factor.category_text}" '
                 f"({factor.uom}, scope {factor.scope}), score {best.score:.4f}"),
            score=best.score,
        )
