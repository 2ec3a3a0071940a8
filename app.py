# app.py
from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any, Optional

from dotenv import load_dotenv
from fastapi import Body, Depends, FastAPI, HTTPException, Query

load_dotenv()

from circa_match import config as CFG
from circa_match.api import match_batch
from circa_match.index import IndexCache
from circa_match.matcher import FactorMatcher
from circa_match.recalc import recalculate_company
from circa_match.status import check_factor_status, run_diagnostics
from circa_match.store import FactorStoreError
from db_loader import apply_overrides, get_factor_store, load_factors_from_db
from settings.settings import settings

apply_overrides(settings)

logger = logging.getLogger(__name__)

app = FastAPI(
    title="circa_match microservice",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)


# ---------- dependencies ----------
@lru_cache(maxsize=1)
def get_store():
    return get_factor_store(settings)


@lru_cache(maxsize=8)
def _cache_for(store) -> IndexCache:
    return IndexCache.for_store(store)


def get_cache(store=Depends(get_store)) -> IndexCache:
    """One long-lived index cache per store instance."""
    return _cache_for(store)


def _source(source: Optional[str]) -> str:
    return (source or "").strip() or CFG.DEFAULT_SOURCE


# ---------- routes ----------
@app.get("/health")
def health():
    return {"ok": True}


@app.get("/debug/factor-count")
def factor_count(source: Optional[str] = Query(None), store=Depends(get_store),
                 cache: IndexCache = Depends(get_cache)):
    src = _source(source)
    try:
        df = load_factors_from_db(src, store=store)
        index = cache.get(src)
    except FactorStoreError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return {"source": src, "factor_rows": len(df), "indexed": len(index) if index else 0,
            "available": index is not None}


@app.post("/match")
def match_entries(payload: Any = Body(...), source: Optional[str] = Query(None),
                  cache: IndexCache = Depends(get_cache)):
    """
    Body: [{ "category": str, "unit": str, "scope": int|str, "quantity": number }, ...]
    One result per entry, same order, each echoing its entry.
    """
    if not isinstance(payload, list):
        raise HTTPException(status_code=400, detail="Request body must be an array of emission entries")
    src = _source(source)
    matcher = FactorMatcher(lambda: cache.get(src), src)
    return {"source": src, "results": match_batch(payload, matcher)}


@app.post("/companies/{company_id}/recalculate")
def recalculate(company_id: str, source: Optional[str] = Query(None),
                store=Depends(get_store), cache: IndexCache = Depends(get_cache)):
    try:
        summary = recalculate_company(store, company_id, cache=cache, source=source)
    except FactorStoreError as e:
        logger.error("recalculate failed for company %s: %s", company_id, e, exc_info=True)
        raise HTTPException(status_code=502, detail=str(e))
    return {"success": True, "data": summary.counts(), "message": summary.message}


@app.get("/companies/{company_id}/factor-status")
def factor_status(company_id: str, store=Depends(get_store)):
    try:
        return check_factor_status(store, company_id)
    except FactorStoreError as e:
        raise HTTPException(status_code=502, detail=str(e))


@app.get("/companies/{company_id}/diagnostics")
def diagnostics(company_id: str, store=Depends(get_store)):
    try:
        return run_diagnostics(store, company_id)
    except FactorStoreError as e:
        raise HTTPException(status_code=502, detail=str(e))


@app.post("/debug/reload-factors")
def reload_factors(source: Optional[str] = Query(None), cache: IndexCache = Depends(get_cache)):
    """Drop cached indexes (one source, or all) so the next match rebuilds them."""
    cache.invalidate(source.strip() if source else None)
    return {"ok": True, "source": source or "*"}
