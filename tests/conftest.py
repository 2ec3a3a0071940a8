from __future__ import annotations

import pytest
import sqlalchemy as sa
from sqlalchemy.pool import StaticPool

from circa_match.index import Candidate, index_factor
from circa_match.models import EmissionFactor
from circa_match.store import SqlFactorStore

SCHEMA = [
    """CREATE TABLE emission_factors (
        "ID" INTEGER PRIMARY KEY, category_1 TEXT, category_2 TEXT, category_3 TEXT,
        category_4 TEXT, uom TEXT, source TEXT, scope INTEGER,
        "GHG Conversion Factor 2024" REAL, year INTEGER)""",
    """CREATE TABLE emission_entries (
        id INTEGER PRIMARY KEY, company_id TEXT, date TEXT, category TEXT, description TEXT,
        quantity REAL, unit TEXT, scope INTEGER, emission_factor REAL, emissions REAL)""",
    """CREATE TABLE company_preferences (
        company_id TEXT PRIMARY KEY, preferred_emission_source TEXT)""",
]

FACTORS = [
    # ID, c1, c2, c3, c4, uom, source, scope, factor, year
    (1, "Diesel", None, None, None, "litres", "DEFRA", 1, 2.5, 2024),
    (2, "Diesel", None, None, None, "litres", "DEFRA", 1, 2.4, 2023),
    (3, "Natural Gas", None, None, None, "kWh", "DEFRA", 1, 0.18, 2024),
    (4, "Electricity", "Grid", None, None, "kWh", "DEFRA", 2, 0.207, 2024),
    (5, "Petrol", None, None, None, "litres", "DEFRA", 1, 2.3, 2024),
    (6, "Refrigerant", "R134a", None, None, "kg", "DEFRA", 1, None, 2024),
    (10, "Diesel", None, None, None, "gallons", "EPA", 1, 10.21, 2024),
]

ENTRIES = [
    # id, company, date, category, description, quantity, unit, scope
    (1, "c1", "2024-01-10", "Diesel", "fleet", 100.0, "liters", 1),
    (2, "c1", "2024-01-11", "Mystery Fuel", None, 10.0, "kg", 1),
    (3, "c1", "2024-01-12", "Refrigerant R134a", "top-up", 5.0, "kg", 1),
    (4, "c1", "2024-01-13", "natural gas", "boiler", 1000.0, "kWh", 1),
    (5, "c2", "2024-02-01", "Diesel", None, 10.0, "gallons", 1),
]

PREFERENCES = [("c1", "DEFRA"), ("c2", "EPA")]


def make_engine() -> sa.engine.Engine:
    return sa.create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )


@pytest.fixture
def engine():
    eng = make_engine()
    with eng.begin() as conn:
        for ddl in SCHEMA:
            conn.exec_driver_sql(ddl)
        conn.exec_driver_sql(
            'INSERT INTO emission_factors VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)', FACTORS)
        conn.exec_driver_sql(
            "INSERT INTO emission_entries (id, company_id, date, category, description, quantity, unit, scope) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?)", ENTRIES)
        conn.exec_driver_sql("INSERT INTO company_preferences VALUES (?, ?)", PREFERENCES)
    yield eng
    eng.dispose()


@pytest.fixture
def store(engine):
    return SqlFactorStore(engine)


class StubIndex:
    """Index double returning fixed candidates and recording queries."""

    def __init__(self, candidates=(), near=()):
        self.candidates = list(candidates)
        self.near = list(near)
        self.queries = []

    def __len__(self):
        return max(1, len(self.candidates))

    def search(self, query, **kwargs):
        self.queries.append(query)
        return list(self.candidates)

    def search_categories(self, query, **kwargs):
        return list(self.near)


def candidate(score, id=1, category="Natural Gas Heating", uom="kWh", scope="1", factor=1.0):
    f = EmissionFactor(id=id, category_1=category, uom=uom, scope=scope,
                       source="DEFRA", conversion_factor=factor)
    return Candidate(index_factor(f), score)
