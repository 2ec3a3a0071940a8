# circa_match/index.py
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from rapidfuzz import fuzz, process

from . import config, preprocessing as pp
from .data_loader import factors_from_frame
from .models import EmissionFactor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IndexedFactor:
    factor: EmissionFactor
    category: str       # normalized full category
    unit: str           # normalized uom
    scope: str          # normalized scope
    search_string: str


@dataclass(frozen=True)
class Candidate:
    item: IndexedFactor
    score: float        # 0 = exact, 1 = no match

    @property
    def factor(self) -> EmissionFactor:
        return self.item.factor


def index_factor(factor: EmissionFactor) -> IndexedFactor:
    category = pp.full_category(factor.categories)
    unit = pp.normalize_unit(factor.uom)
    scope = pp.normalize_scope(factor.scope)
    return IndexedFactor(factor, category, unit, scope, pp.compose(category, unit, scope))


def _prefer(a: IndexedFactor, b: IndexedFactor) -> IndexedFactor:
    """Eligible rows beat null factors, then the newest vintage wins."""
    def key(x: IndexedFactor) -> Tuple[bool, int]:
        return (x.factor.eligible, x.factor.year if x.factor.year is not None else -1)
    return b if key(b) > key(a) else a


def dedupe_vintages(items: Iterable[IndexedFactor]) -> List[IndexedFactor]:
    best: Dict[str, IndexedFactor] = {}
    for it in items:
        cur = best.get(it.search_string)
        best[it.search_string] = it if cur is None else _prefer(cur, it)
    return list(best.values())


class FactorIndex:
    """
    Read-only fuzzy index over one source's factors. Never mutated after
    construction, so a single instance can be shared by concurrent callers.
    """

    def __init__(self, factors: Sequence[EmissionFactor], source: str = "",
                 scorer: Callable = fuzz.token_set_ratio):
        self.source = source
        self.scorer = scorer
        self.items: Tuple[IndexedFactor, ...] = tuple(dedupe_vintages(index_factor(f) for f in factors))
        self._search_strings = tuple(it.search_string for it in self.items)
        self._categories = tuple(it.category for it in self.items)

    def __len__(self) -> int:
        return len(self.items)

    def _extract(self, query: str, choices: Tuple[str, ...], limit: int,
                 threshold: float, min_match_len: int) -> List[Candidate]:
        if not query or len(query.replace(" ", "")) < min_match_len:
            return []
        cutoff = max(0.0, (1.0 - threshold) * 100.0)
        hits = process.extract(query, choices, scorer=self.scorer,
                               limit=limit, score_cutoff=cutoff)
        return [Candidate(self.items[i], 1.0 - sim / 100.0) for _, sim, i in hits]

    def search(self, query: str, limit: Optional[int] = None,
               threshold: Optional[float] = None,
               min_match_len: Optional[int] = None) -> List[Candidate]:
        """Ranked candidates (best first) against the composite search strings."""
        return self._extract(
            query, self._search_strings,
            limit if limit is not None else config.SEARCH_LIMIT,
            threshold if threshold is not None else config.THRESHOLD,
            min_match_len if min_match_len is not None else config.MIN_MATCH_CHAR_LENGTH,
        )

    def search_categories(self, query: str, limit: Optional[int] = None,
                          threshold: Optional[float] = None,
                          min_match_len: Optional[int] = None) -> List[Candidate]:
        """Same as search() but against the category text only."""
        return self._extract(
            query, self._categories,
            limit if limit is not None else config.DIAG_TOP_N,
            threshold if threshold is not None else config.DIAG_THRESHOLD,
            min_match_len if min_match_len is not None else config.DIAG_MIN_MATCH_CHAR_LENGTH,
        )


def build_index(store, source: Optional[str] = None) -> Optional[FactorIndex]:
    """
    Load one source's factors and index them.
    Returns None when the source has no rows (index unavailable);
    store failures (FactorStoreError) propagate.
    """
    source = source or config.DEFAULT_SOURCE
    t0 = time.time()
    factors = factors_from_frame(store.load_factors(source))
    if not factors:
        logger.warning("No emission factors for source %r; index unavailable", source)
        return None
    index = FactorIndex(factors, source=source)
    logger.info("Indexed %d/%d %s factors (%.2fs)", len(index), len(factors), source, time.time() - t0)
    return index


class IndexCache:
    """
    One FactorIndex per source. Builds are serialised per source so
    concurrent first callers usually share one build; unavailable
    results are not cached.
    """

    def __init__(self, builder: Callable[[str], Optional[FactorIndex]]):
        self._builder = builder
        self._indexes: Dict[str, FactorIndex] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    @classmethod
    def for_store(cls, store) -> "IndexCache":
        return cls(lambda source: build_index(store, source))

    def get(self, source: Optional[str] = None) -> Optional[FactorIndex]:
        source = source or config.DEFAULT_SOURCE
        index = self._indexes.get(source)
        if index is not None:
            return index
        with self._guard:
            lock = self._locks.setdefault(source, threading.Lock())
        with lock:
            index = self._indexes.get(source)
            if index is None:
                index = self._builder(source)
                if index is not None:
                    self._indexes[source] = index
        return index

    def invalidate(self, source: Optional[str] = None) -> None:
        with self._guard:
            if source is None:
                self._indexes.clear()
            else:
                self._indexes.pop(source, None)

    def __contains__(self, source: str) -> bool:
        return source in self._indexes
