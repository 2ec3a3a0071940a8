# circa_match/api.py
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

from .index import IndexCache
from .matcher import FactorMatcher
from .models import MatchResult, MatchStatus

logger = logging.getLogger(__name__)


def _error_result(e: Exception) -> MatchResult:
    return MatchResult(MatchStatus.ERROR, log=f"Error: {e}")


def match_one(entry: Any, matcher: FactorMatcher) -> MatchResult:
    """
    Like matcher.match, but never raises: store failures become an
    ERROR result so a batch keeps going.
    """
    try:
        return matcher.match(entry)
    except Exception as e:
        logger.error("match failed for entry %r: %s", entry, e, exc_info=True)
        return _error_result(e)


# ---------------------------------------------------------
# Public API – app.py / recalc.py only call these
# ---------------------------------------------------------
def match_batch(raw_entries: Iterable[Any], matcher: FactorMatcher) -> List[Dict[str, Any]]:
    """
    One output per input, in input order, each echoing its entry:
      {"status", "matched_factor", "calculated_emissions", "log", ..., "entry"}
    Malformed entries are kept as validation failures, never dropped.
    """
    out: List[Dict[str, Any]] = []
    for entry in raw_entries:
        res = match_one(entry, matcher)
        out.append({**res.as_dict(), "entry": entry})
    return out


def match_entries(raw_entries: Iterable[Any], store, source: Optional[str] = None,
                  cache: Optional[IndexCache] = None) -> List[Dict[str, Any]]:
    """Convenience: one shared index for the whole batch."""
    return match_batch(raw_entries, FactorMatcher.for_store(store, source=source, cache=cache))
