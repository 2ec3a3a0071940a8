# circa_match/status.py
# Exact (normalized) factor availability for a company's activity data.
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Set, Tuple

from . import config, preprocessing as pp
from .data_loader import entries_from_frame, factors_from_frame

Key = Tuple[str, str, str]


@dataclass
class FactorAvailability:
    category: str
    unit: str
    scope: Any
    available_sources: Dict[str, bool] = field(default_factory=dict)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category,
            "unit": self.unit,
            "scope": self.scope,
            "available_sources": [
                {"source": s, "has_data": ok} for s, ok in self.available_sources.items()
            ],
        }


def _entry_key(entry: Dict[str, Any]) -> Key:
    return (pp.normalize(entry.get("category")), pp.normalize_unit(entry.get("unit")),
            pp.normalize_scope(entry.get("scope")))


def _factor_keys(factors) -> Dict[str, Set[Key]]:
    """source → {(category, unit, scope)}; both category_1 and the full category count."""
    out: Dict[str, Set[Key]] = {}
    for f in factors:
        unit, scope = pp.normalize_unit(f.uom), pp.normalize_scope(f.scope)
        keys = out.setdefault(f.source, set())
        keys.add((pp.normalize(f.category_1), unit, scope))
        keys.add((pp.full_category(f.categories), unit, scope))
    return out


def _unique_entries(entries: List[Dict[str, Any]]) -> List[Tuple[Key, Dict[str, Any]]]:
    seen: Dict[Key, Dict[str, Any]] = {}
    for e in entries:
        seen.setdefault(_entry_key(e), e)
    return list(seen.items())


def check_factor_status(store, company_id: Any) -> Dict[str, Any]:
    entries = entries_from_frame(store.load_entries(company_id))
    by_source = _factor_keys(factors_from_frame(store.load_factors(None)))
    preferred = store.preferred_source(company_id)

    sources = list(config.KNOWN_SOURCES)
    if preferred not in sources:
        sources.append(preferred)

    items = []
    for key, e in _unique_entries(entries):
        items.append(FactorAvailability(
            category=e.get("category") or "",
            unit=e.get("unit") or "",
            scope=e.get("scope"),
            available_sources={s: key in by_source.get(s, ()) for s in sources},
        ))
    return {"preferred_source": preferred, "data": [i.as_dict() for i in items]}


def run_diagnostics(store, company_id: Any) -> Dict[str, Any]:
    entries = entries_from_frame(store.load_entries(company_id))
    preferred = store.preferred_source(company_id)
    keys = _factor_keys(factors_from_frame(store.load_factors(preferred))).get(preferred, set())

    missing: List[str] = []
    for key, e in _unique_entries(entries):
        if key not in keys:
            label = f"{e.get('category')}/{e.get('unit')}"
            if label not in missing:
                missing.append(label)

    return {
        "preferred_source": preferred,
        "logs": [{"log_type": "warning", "log_message": f"Missing emission factor for: {m}"} for m in missing],
        "missing_calculations": len(missing),
    }
