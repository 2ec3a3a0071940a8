# circa_match/diagnostics.py
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional

from . import config, preprocessing as pp


@dataclass
class NearMiss:
    id: Any
    category: str
    uom: str
    scope: str
    score: float

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def __str__(self) -> str:
        return (f'ID:{self.id}, category: "{self.category}", uom: {self.uom}, '
                f"scope: {self.scope}, score: {self.score:.4f}")


def near_misses(index, normalized_category: str, limit: Optional[int] = None) -> List[NearMiss]:
    """Closest rows by category text alone, using the loosest search settings."""
    limit = limit if limit is not None else config.DIAG_TOP_N
    return [
        NearMiss(c.factor.id, c.factor.category_text, c.factor.uom, c.factor.scope, c.score)
        for c in index.search_categories(normalized_category, limit=limit)
    ]


def format_near_misses(misses: List[NearMiss]) -> str:
    return " | ".join(str(m) for m in misses) if misses else "none"


@dataclass
class NormTrace:
    raw: str
    cleaned: str
    synonym: Optional[str]
    normalized: str

    def as_dict(self) -> Dict: return asdict(self)


def trace(text: Any) -> NormTrace:
    raw = "" if text is None else str(text)
    cleaned = pp.clean(raw)
    syn = pp.SYN.get(cleaned)
    return NormTrace(raw, cleaned, syn if syn != cleaned else None, pp.normalize(raw))

