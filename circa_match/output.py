# circa_match/output.py
from typing import Any, Dict, List

import pandas as pd

RESULT_COLS = ["category", "unit", "scope", "quantity", "status",
               "factor_id", "conversion_factor", "calculated_emissions", "log"]


def _fmt_num(x) -> str:
    return "—" if x is None or pd.isna(x) else f"{x:,.4f}".rstrip("0").rstrip(".")


def _qty(q) -> str:
    return _fmt_num(q) if isinstance(q, (int, float)) and not isinstance(q, bool) else str(q)


def summarise(res: Dict[str, Any]) -> str:
    """
    Batch result (match_batch row) → console text:
      “Diesel (liters, scope 1) x 100 → 250 kgCO2e [ID:7 Fuels Liquid Diesel]”
    """
    e = res.get("entry")
    e = e if isinstance(e, dict) else {}
    head = f"{e.get('category')} ({e.get('unit')}, scope {e.get('scope')}) x {_qty(e.get('quantity'))}"
    f = res.get("matched_factor")
    if res.get("calculated_emissions") is not None and f:
        cats = " ".join(c for c in (f.get("category_1"), f.get("category_2"),
                                    f.get("category_3"), f.get("category_4")) if c)
        return f"{head} → {_fmt_num(res['calculated_emissions'])} kgCO2e [ID:{f.get('id')} {cats}]"
    lines = [f"{head} → {res.get('status')}"]
    if res.get("log"):
        lines.append(f"   – {res['log']}")
    return "\n".join(lines)


def results_frame(results: List[Dict[str, Any]]) -> pd.DataFrame:
    rows = []
    for res in results:
        e = res.get("entry")
        e = e if isinstance(e, dict) else {}
        f = res.get("matched_factor") or {}
        rows.append({
            "category": e.get("category"),
            "unit": e.get("unit"),
            "scope": e.get("scope"),
            "quantity": e.get("quantity"),
            "status": res.get("status"),
            "factor_id": f.get("id"),
            "conversion_factor": f.get("conversion_factor"),
            "calculated_emissions": res.get("calculated_emissions"),
            "log": res.get("log"),
        })
    return pd.DataFrame(rows, columns=RESULT_COLS)


def status_counts(results: List[Dict[str, Any]]) -> Dict[str, int]:
    df = results_frame(results)
    if df.empty:
        return {}
    return {str(k): int(v) for k, v in df["status"].value_counts().items()}
