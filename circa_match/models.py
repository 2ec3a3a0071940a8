# circa_match/models.py
from __future__ import annotations

from dataclasses import dataclass, asdict, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union

Scope = Union[int, str]


@dataclass(frozen=True)
class EmissionFactor:
    """One reference row. Textual fields are never None."""
    id: Any
    category_1: str = ""
    category_2: str = ""
    category_3: str = ""
    category_4: str = ""
    uom: str = ""
    source: str = ""
    scope: str = ""
    conversion_factor: Optional[float] = None
    year: Optional[int] = None

    @property
    def categories(self) -> Tuple[str, str, str, str]:
        return (self.category_1, self.category_2, self.category_3, self.category_4)

    @property
    def category_text(self) -> str:
        return " ".join(c for c in self.categories if c)

    @property
    def eligible(self) -> bool:
        return self.conversion_factor is not None

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class EmissionEntry:
    category: str
    unit: str
    scope: Scope
    quantity: float
    date: Optional[str] = None
    id: Any = None
    description: Optional[str] = None


class MatchStatus(str, Enum):
    SUCCESS = "success"
    VALIDATION_FAILURE = "validation_failure"
    INDEX_UNAVAILABLE = "index_unavailable"
    NO_MATCH = "no_match"
    INELIGIBLE_MATCH = "ineligible_match"
    ERROR = "error"


@dataclass
class MatchResult:
    status: MatchStatus
    matched_factor: Optional[EmissionFactor] = None
    calculated_emissions: Optional[float] = None
    log: Optional[str] = None
    score: Optional[float] = None
    near_misses: list = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status is MatchStatus.SUCCESS

    def as_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "matched_factor": self.matched_factor.as_dict() if self.matched_factor else None,
            "calculated_emissions": self.calculated_emissions,
            "log": self.log,
            "score": self.score,
            "near_misses": [m.as_dict() for m in self.near_misses],
        }
