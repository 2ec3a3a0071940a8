from __future__ import annotations

import logging
from typing import Optional

import pandas as pd

from circa_match import config as CFG
from circa_match.store import SqlFactorStore, SupabaseFactorStore
from settings.settings import Settings, settings as default_settings

logger = logging.getLogger(__name__)


def apply_overrides(s: Settings) -> None:
    """Push table/column and matching overrides from settings into circa_match.config."""
    for name in ("FACTORS_TABLE", "ENTRIES_TABLE", "PREFERENCES_TABLE",
                 "FACTOR_SOURCE_COL", "DEFAULT_SOURCE", "SEARCH_LIMIT", "DIAG_TOP_N"):
        v = getattr(s, name)
        if v is not None and str(v).strip() != "":
            setattr(CFG, name, v)
    if s.MATCH_THRESHOLD is not None:
        CFG.THRESHOLD = s.MATCH_THRESHOLD


def get_factor_store(s: Optional[Settings] = None):
    """
    STORE_BACKEND=supabase → PostgREST over requests
    otherwise               → SQLAlchemy engine from DB_URL / DB_*
    """
    s = s or default_settings
    if s.STORE_BACKEND.strip().lower() == "supabase":
        return SupabaseFactorStore(
            supabase_url=s.SUPABASE_URL,
            service_key=s.SUPABASE_SERVICE_ROLE_KEY,
            timeout=s.SUPABASE_TIMEOUT,
        )
    from settings.database import get_engine
    return SqlFactorStore(get_engine())


def load_factors_from_db(source: Optional[str] = None, store=None) -> pd.DataFrame:
    """Raw factor rows for one source (all sources when source is None)."""
    store = store or get_factor_store()
    df = store.load_factors(source)
    logger.info("Loaded %d factor rows (source=%s)", len(df), source or "*")
    return df
