# circa_match/data_loader.py
# Raw store frames → typed records: header autodetect + NaN coercion

from typing import Any, Dict, List, Optional

import pandas as pd

from .models import EmissionFactor

# canonical name → accepted headers (case/space-insensitive)
FACTOR_COLUMNS: Dict[str, List[str]] = {
    "id": ["id", "ID", "factor_id"],
    "category_1": ["category_1", "Category_1", "category 1", "level 1"],
    "category_2": ["category_2", "Category_2", "category 2", "level 2"],
    "category_3": ["category_3", "Category_3", "category 3", "level 3"],
    "category_4": ["category_4", "Category_4", "category 4", "level 4"],
    "uom": ["uom", "UOM", "unit", "unit of measure"],
    "source": ["source", "Source"],
    "scope": ["scope", "Scope"],
    "conversion_factor": [
        "conversion_factor", "GHG Conversion Factor 2024",
        "ghg conversion factor", "factor", "kg co2e",
    ],
    "year": ["year", "Year", "vintage"],
}

ENTRY_COLUMNS: Dict[str, List[str]] = {
    "id": ["id", "ID"],
    "category": ["category", "Category"],
    "unit": ["unit", "uom", "UOM"],
    "scope": ["scope", "Scope"],
    "quantity": ["quantity", "amount", "qty"],
    "date": ["date"],
    "description": ["description"],
}


# ---------- Helpers ----------
def _norm(s: Any) -> str:
    return " ".join(str(s).replace("_", " ").lower().split())


def _pick_col(cols: List[Any], prefer: List[str]) -> Optional[Any]:
    """Exact header first, then normalized (case/space/underscore) header."""
    for want in prefer:
        if want in cols:
            return want
    nmap = {_norm(c): c for c in cols}
    for want in prefer:
        hit = nmap.get(_norm(want))
        if hit is not None:
            return hit
    return None


def canonical_frame(raw: pd.DataFrame, columns: Dict[str, List[str]]) -> pd.DataFrame:
    """Rename recognised headers to canonical names; missing ones become None."""
    df = pd.DataFrame(index=raw.index)
    cols = list(raw.columns)
    for name, prefer in columns.items():
        src = _pick_col(cols, prefer)
        df[name] = raw[src] if src is not None else None
    return df


def _records(df: pd.DataFrame) -> List[Dict[str, Any]]:
    df = df.astype(object)
    return df.where(pd.notna(df), None).to_dict(orient="records")


def _text(v: Any) -> str:
    if v is None:
        return ""
    if isinstance(v, float) and v.is_integer():
        return str(int(v))
    return str(v).strip()


def _id(v: Any) -> Any:
    if isinstance(v, float) and v.is_integer():
        return int(v)
    return v


# ---------- Factors ----------
def factors_from_frame(raw: pd.DataFrame) -> List[EmissionFactor]:
    """
    Map a factor table (any of the known header spellings) to EmissionFactor
    records. Text fields fall back to '', conversion factor and year to None.
    """
    if raw is None or raw.empty:
        return []

    df = canonical_frame(raw, FACTOR_COLUMNS)
    df["conversion_factor"] = pd.to_numeric(df["conversion_factor"], errors="coerce")
    df["year"] = pd.to_numeric(df["year"], errors="coerce")

    out = []
    for row in _records(df):
        factor = row["conversion_factor"]
        year = row["year"]
        out.append(EmissionFactor(
            id=_id(row["id"]),
            category_1=_text(row["category_1"]),
            category_2=_text(row["category_2"]),
            category_3=_text(row["category_3"]),
            category_4=_text(row["category_4"]),
            uom=_text(row["uom"]),
            source=_text(row["source"]),
            scope=_text(row["scope"]),
            conversion_factor=float(factor) if factor is not None else None,
            year=int(year) if year is not None else None,
        ))
    return out


# ---------- Entries ----------
def entries_from_frame(raw: pd.DataFrame) -> List[Dict[str, Any]]:
    """
    Company activity rows as plain dicts (the batch matcher validates them).
    Numeric-looking scopes come back as int.
    """
    if raw is None or raw.empty:
        return []

    df = canonical_frame(raw, ENTRY_COLUMNS)
    rows = _records(df)
    for row in rows:
        row["id"] = _id(row["id"])
        scope = row["scope"]
        if isinstance(scope, float) and scope.is_integer():
            row["scope"] = int(scope)
        q = row["quantity"]
        if q is not None and not isinstance(q, (int, float)):
            try:
                row["quantity"] = float(q)
            except (TypeError, ValueError):
                pass  # left as-is, fails validation downstream
    return rows
