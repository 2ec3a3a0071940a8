# circa_match/preprocessing.py
import re
from numbers import Real
from typing import Any, Iterable

_WS = re.compile(r"\s+")
_NUM = re.compile(r"[+-]?\d+(\.\d+)?")

# Whole-string synonyms. Every value is also a fixed point of the table,
# which keeps normalize() idempotent.
SYN = {
    # volume
    "l": "liters", "liter": "liters", "litre": "liters",
    "liters": "liters", "litres": "liters",
    # fuels
    "petrol": "gasoline", "gas": "gasoline", "gasoline": "gasoline",
    # mass
    "kg": "kg", "kgs": "kg", "kilogram": "kg", "kilograms": "kg",
    "t": "t", "ton": "t", "tons": "t", "tonne": "t", "tonnes": "t", "tonnage": "t",
    # energy
    "kwh": "kwh", "kilowatt hour": "kwh", "kilowatt hours": "kwh", "kilowatt-hour": "kwh",
}


def clean(text: Any) -> str:
    """Lowercase, trim and collapse whitespace. None → ''."""
    if text is None:
        return ""
    return _WS.sub(" ", str(text).lower()).strip()


def normalize(text: Any) -> str:
    lowered = clean(text)
    return SYN.get(lowered, lowered)


def normalize_unit(unit: Any) -> str:
    return normalize(unit)


def normalize_scope(scope: Any) -> str:
    """1, 1.0, "1", " 1.0 " → "1". Missing → ''."""
    if scope is None or isinstance(scope, bool):
        return ""
    if isinstance(scope, Real):
        if scope != scope:  # NaN
            return ""
        if float(scope).is_integer():
            return str(int(scope))
        return str(scope)
    text = clean(scope)
    if _NUM.fullmatch(text):
        return normalize_scope(float(text))
    return text


def full_category(parts: Iterable[Any]) -> str:
    """Normalized, space-joined non-empty category levels."""
    return " ".join(n for n in (normalize(p) for p in parts) if n)


def compose(*parts: str) -> str:
    return " ".join(p for p in parts if p)


def search_string(categories: Iterable[Any], unit: Any, scope: Any) -> str:
    return compose(full_category(categories), normalize_unit(unit), normalize_scope(scope))
