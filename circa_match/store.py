# circa_match/store.py
# Factor-store collaborators. Both expose:
#   load_factors(source) / load_entries(company_id) -> DataFrame
#   preferred_source(company_id) -> str
#   save_emissions(entry_id, emission_factor, emissions)
from __future__ import annotations

import logging
import os
from typing import Any, Dict, List, Optional

import pandas as pd
import requests
import sqlalchemy as sa
from sqlalchemy.exc import SQLAlchemyError

from . import config

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 20


class FactorStoreError(RuntimeError):
    pass


class SqlFactorStore:
    def __init__(
        self,
        engine: sa.engine.Engine,
        *,
        factors_table: Optional[str] = None,
        entries_table: Optional[str] = None,
        preferences_table: Optional[str] = None,
        source_column: Optional[str] = None,
    ) -> None:
        self.engine = engine
        self.factors_table = factors_table or config.FACTORS_TABLE
        self.entries_table = entries_table or config.ENTRIES_TABLE
        self.preferences_table = preferences_table or config.PREFERENCES_TABLE
        self.source_column = source_column or config.FACTOR_SOURCE_COL

    @classmethod
    def from_url(cls, db_url: str, **kwargs: Any) -> "SqlFactorStore":
        connect_args = {}
        if db_url.startswith("sqlite"):
            connect_args = {"check_same_thread": False}
        engine = sa.create_engine(db_url, pool_pre_ping=True, future=True, connect_args=connect_args)
        return cls(engine, **kwargs)

    def _read(self, stmt) -> pd.DataFrame:
        try:
            with self.engine.connect() as conn:
                return pd.read_sql(stmt, conn)
        except (SQLAlchemyError, pd.errors.DatabaseError) as e:
            raise FactorStoreError(f"factor store read failed: {e}") from e

    def _select_all(self, table: str):
        return sa.select(sa.literal_column("*")).select_from(sa.table(table))

    def load_factors(self, source: Optional[str] = None) -> pd.DataFrame:
        stmt = self._select_all(self.factors_table)
        if source:
            stmt = stmt.where(sa.column(self.source_column) == source)
        df = self._read(stmt)
        logger.debug("Read %d factor rows (source=%s)", len(df), source)
        return df

    def load_entries(self, company_id: Any) -> pd.DataFrame:
        stmt = self._select_all(self.entries_table).where(sa.column("company_id") == company_id)
        return self._read(stmt)

    def preferred_source(self, company_id: Any) -> str:
        stmt = (
            sa.select(sa.column("preferred_emission_source"))
            .select_from(sa.table(self.preferences_table))
            .where(sa.column("company_id") == company_id)
            .limit(1)
        )
        try:
            with self.engine.connect() as conn:
                value = conn.execute(stmt).scalar()
        except SQLAlchemyError as e:
            raise FactorStoreError(f"preference read failed: {e}") from e
        return value or config.DEFAULT_SOURCE

    def save_emissions(self, entry_id: Any, emission_factor: float, emissions: float) -> None:
        t = sa.table(self.entries_table, sa.column("id"), sa.column("emission_factor"), sa.column("emissions"))
        stmt = sa.update(t).where(t.c.id == entry_id).values(emission_factor=emission_factor, emissions=emissions)
        try:
            with self.engine.begin() as conn:
                conn.execute(stmt)
        except SQLAlchemyError as e:
            raise FactorStoreError(f"write-back failed for entry {entry_id}: {e}") from e


class SupabaseFactorStore:
    """Same interface over the hosted store's PostgREST endpoint."""

    def __init__(
        self,
        *,
        supabase_url: Optional[str] = None,
        service_key: Optional[str] = None,
        timeout: int = DEFAULT_TIMEOUT,
        factors_table: Optional[str] = None,
        entries_table: Optional[str] = None,
        preferences_table: Optional[str] = None,
        source_column: Optional[str] = None,
    ) -> None:
        url = (supabase_url or os.getenv("SUPABASE_URL", "")).strip().rstrip("/")
        key = (service_key or os.getenv("SUPABASE_SERVICE_ROLE_KEY", "")).strip()
        self.base_url = f"{url}/rest/v1" if url else ""
        self.timeout = timeout
        self._configured = bool(url and key)
        self.common_headers = {
            "apikey": key,
            "Authorization": f"Bearer {key}",
            "Content-Type": "application/json",
        }
        self.factors_table = factors_table or config.FACTORS_TABLE
        self.entries_table = entries_table or config.ENTRIES_TABLE
        self.preferences_table = preferences_table or config.PREFERENCES_TABLE
        self.source_column = source_column or config.FACTOR_SOURCE_COL

    @property
    def configured(self) -> bool:
        return self._configured

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        payload: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        if not self.configured:
            raise FactorStoreError("Supabase is not configured. Set SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY.")
        merged = dict(self.common_headers)
        if headers:
            merged.update(headers)
        try:
            response = requests.request(
                method=method,
                url=f"{self.base_url}{path}",
                params=params,
                json=payload,
                headers=merged,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise FactorStoreError(f"Supabase {method} {path} unreachable: {e}") from e
        if response.status_code >= 400:
            raise FactorStoreError(
                f"Supabase {method} {path} failed ({response.status_code}): {response.text[:1200]}"
            )
        if response.text and "application/json" in response.headers.get("content-type", ""):
            return response.json()
        return None

    def fetch_rows(self, table: str, *, select: str = "*",
                   filters: Optional[Dict[str, str]] = None, page_size: int = 1000) -> List[Dict[str, Any]]:
        rows: List[Dict[str, Any]] = []
        offset = 0
        while True:
            params: Dict[str, Any] = {"select": select, "limit": page_size, "offset": offset}
            params.update(filters or {})
            page = self._request("GET", f"/{table}", params=params)
            if not isinstance(page, list):
                raise FactorStoreError(f"Unexpected response type for table {table}")
            rows.extend(page)
            if len(page) < page_size:
                break
            offset += page_size
        return rows

    def load_factors(self, source: Optional[str] = None) -> pd.DataFrame:
        filters = {self.source_column: f"eq.{source}"} if source else None
        rows = self.fetch_rows(self.factors_table, filters=filters)
        logger.debug("Fetched %d factor rows (source=%s)", len(rows), source)
        return pd.DataFrame(rows)

    def load_entries(self, company_id: Any) -> pd.DataFrame:
        return pd.DataFrame(self.fetch_rows(self.entries_table, filters={"company_id": f"eq.{company_id}"}))

    def preferred_source(self, company_id: Any) -> str:
        rows = self._request(
            "GET",
            f"/{self.preferences_table}",
            params={"select": "preferred_emission_source", "company_id": f"eq.{company_id}", "limit": 1},
        )
        value = rows[0].get("preferred_emission_source") if rows else None
        return value or config.DEFAULT_SOURCE

    def save_emissions(self, entry_id: Any, emission_factor: float, emissions: float) -> None:
        self._request(
            "PATCH",
            f"/{self.entries_table}",
            params={"id": f"eq.{entry_id}"},
            payload={"emission_factor": emission_factor, "emissions": emissions},
            headers={"Prefer": "return=minimal"},
        )
