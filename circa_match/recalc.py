# circa_match/recalc.py
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .api import match_batch
from .data_loader import entries_from_frame
from .index import IndexCache
from .matcher import FactorMatcher
from .models import MatchStatus
from .store import FactorStoreError

logger = logging.getLogger(__name__)


@dataclass
class RecalcSummary:
    company_id: Any
    source: str
    updated_rows: int = 0
    unmatched_rows: int = 0
    failed_rows: int = 0
    results: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def message(self) -> str:
        return f"Updated {self.updated_rows} entries. {self.unmatched_rows} entries remain unmatched."

    def counts(self) -> Dict[str, Any]:
        return {
            "company_id": self.company_id,
            "source": self.source,
            "updated_rows": self.updated_rows,
            "unmatched_rows": self.unmatched_rows,
            "failed_rows": self.failed_rows,
        }


def recalculate_company(store, company_id: Any, cache: Optional[IndexCache] = None,
                        source: Optional[str] = None) -> RecalcSummary:
    """
    Re-match every entry of a company against its preferred source and
    write back emission_factor/emissions for the successes. All entries
    share one index build.
    """
    source = source or store.preferred_source(company_id)
    entries = entries_from_frame(store.load_entries(company_id))
    logger.info("Recalculating %d entries for company %s (source %s)", len(entries), company_id, source)

    t0 = time.time()
    matcher = FactorMatcher.for_store(store, source=source, cache=cache)
    summary = RecalcSummary(company_id, source, results=match_batch(entries, matcher))

    for res in summary.results:
        status = MatchStatus(res["status"])
        if status is MatchStatus.SUCCESS:
            entry_id = res["entry"].get("id")
            try:
                store.save_emissions(
                    entry_id,
                    res["matched_factor"]["conversion_factor"],
                    res["calculated_emissions"],
                )
            except FactorStoreError as e:
                logger.error("write-back failed for entry %s: %s", entry_id, e, exc_info=True)
                res.update(status=MatchStatus.ERROR.value, log=f"Error: {e}")
                summary.failed_rows += 1
                continue
            summary.updated_rows += 1
        elif status is MatchStatus.ERROR:
            summary.failed_rows += 1
        else:
            summary.unmatched_rows += 1

    logger.info("Company %s: %s (%d failed, %.2fs)", company_id, summary.message,
                summary.failed_rows, time.time() - t0)
    return summary
