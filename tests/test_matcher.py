import pytest

from circa_match.index import FactorIndex, IndexCache
from circa_match.matcher import FactorMatcher, boost, validate_entry
from circa_match.models import EmissionEntry, EmissionFactor, MatchStatus
from circa_match.store import FactorStoreError

from conftest import StubIndex, candidate


@pytest.fixture
def matcher(store):
    return FactorMatcher.for_store(store, source="DEFRA")


def _fixed(index):
    calls = []

    def provider():
        calls.append(1)
        return index
    return provider, calls


# ---------- end-to-end against the seeded store ----------
def test_diesel_liters_matches_litres_factor(matcher):
    res = matcher.match({"category": "Diesel", "unit": "liters", "scope": 1, "quantity": 100})
    assert res.status is MatchStatus.SUCCESS
    assert res.matched_factor.id == 1          # 2024 vintage, not the 2023 row
    assert res.calculated_emissions == 250
    assert res.score == 0.0


@pytest.mark.parametrize("unit", ["liter", "l", "litre", "Litres"])
def test_unit_synonyms_match_same_factor(matcher, unit):
    res = matcher.match({"category": "Diesel", "unit": unit, "scope": 1, "quantity": 2})
    assert res.ok
    assert res.matched_factor.id == 1
    assert res.calculated_emissions == 2 * 2.5


def test_accepts_typed_entry_and_string_scope(matcher):
    entry = EmissionEntry(category="natural gas", unit="kWh", scope="1", quantity=1000.0)
    res = matcher.match(entry)
    assert res.ok
    assert res.matched_factor.id == 3
    assert res.calculated_emissions == 1000.0 * 0.18


def test_petrol_resolves_through_synonym(matcher):
    res = matcher.match({"category": "gas", "unit": "litres", "scope": 1, "quantity": 10})
    assert res.matched_factor.id == 5
    assert res.calculated_emissions == pytest.approx(23.0)


def test_unknown_category_reports_near_misses(matcher):
    res = matcher.match({"category": "Mystery Fuel", "unit": "kg", "scope": 1, "quantity": 10})
    assert res.status is MatchStatus.NO_MATCH
    assert res.matched_factor is None
    assert res.calculated_emissions is None
    assert 1 <= len(res.near_misses) <= 3
    for m in res.near_misses:
        assert m.id is not None and m.category and m.uom and m.scope
        assert 0.0 <= m.score <= 1.0
    assert '"Mystery Fuel"' in res.log
    assert "closest matches" in res.log
    assert res.log.count("ID:") == len(res.near_misses)


def test_null_conversion_factor_is_ineligible(matcher):
    res = matcher.match({"category": "Refrigerant R134a", "unit": "kg", "scope": 1, "quantity": 5})
    assert res.status is MatchStatus.INELIGIBLE_MATCH
    assert res.matched_factor is None
    assert res.calculated_emissions is None
    assert "Refrigerant R134a" in res.log


def test_ineligible_single_diesel_row():
    idx = FactorIndex([EmissionFactor(id=9, category_1="Diesel", uom="litres", scope="1",
                                      source="DEFRA", conversion_factor=None)])
    res = FactorMatcher(lambda: idx).match({"category": "Diesel", "unit": "liters", "scope": 1, "quantity": 5})
    assert res.status is MatchStatus.INELIGIBLE_MATCH
    assert res.calculated_emissions is None
    assert "Diesel" in res.log


def test_empty_source_is_index_unavailable(store):
    m = FactorMatcher.for_store(store, source="IPCC")
    res = m.match({"category": "Diesel", "unit": "liters", "scope": 1, "quantity": 5})
    assert res.status is MatchStatus.INDEX_UNAVAILABLE
    assert "IPCC" in res.log


def test_store_failure_propagates():
    def provider():
        raise FactorStoreError("unreachable")

    with pytest.raises(FactorStoreError):
        FactorMatcher(provider).match({"category": "Diesel", "unit": "l", "scope": 1, "quantity": 1})


def test_index_is_reused_across_calls(store):
    loads = []

    class CountingStore:
        def load_factors(self, source):
            loads.append(source)
            return store.load_factors(source)

    counting = CountingStore()
    m = FactorMatcher.for_store(counting, source="DEFRA", cache=IndexCache.for_store(counting))
    for _ in range(5):
        assert m.match({"category": "Diesel", "unit": "l", "scope": 1, "quantity": 1}).ok
    assert loads == ["DEFRA"]


# ---------- validation ----------
@pytest.mark.parametrize("entry", [
    {"category": "", "unit": "liters", "scope": 1, "quantity": 5},
    {"category": "   ", "unit": "liters", "scope": 1, "quantity": 5},
    {"category": "Diesel", "unit": None, "scope": 1, "quantity": 5},
    {"category": "Diesel", "unit": "liters", "quantity": 5},
    {"category": "Diesel", "unit": "liters", "scope": True, "quantity": 5},
    {"category": "Diesel", "unit": "liters", "scope": 1},
    {"category": "Diesel", "unit": "liters", "scope": 1, "quantity": "5"},
    {"category": "Diesel", "unit": "liters", "scope": 1, "quantity": float("nan")},
    {"category": "Diesel", "unit": "liters", "scope": 1, "quantity": -1},
    None,
    "Diesel",
])
def test_invalid_entries_never_touch_the_index(entry):
    provider, calls = _fixed(StubIndex([candidate(0.0)]))
    res = FactorMatcher(provider).match(entry)
    assert res.status is MatchStatus.VALIDATION_FAILURE
    assert res.matched_factor is None and res.calculated_emissions is None
    assert res.log.startswith("Invalid input")
    assert calls == []


def test_validate_entry_lists_every_problem():
    problems = validate_entry({"category": "", "unit": "", "scope": None, "quantity": None})
    assert len(problems) == 4


# ---------- search tiers ----------
def test_falls_back_to_category_only_search():
    class TwoTier(StubIndex):
        def search(self, query, **kwargs):
            self.queries.append(query)
            return [] if len(self.queries) == 1 else [candidate(0.3, uom="kWh", scope="1")]

    idx = TwoTier()
    res = FactorMatcher(lambda: idx).match(
        {"category": "Natural Gas Heating", "unit": "therms", "scope": 2, "quantity": 3})
    assert idx.queries == ["natural gas heating therms 2", "natural gas heating"]
    assert res.ok
    assert res.calculated_emissions == 3.0


def test_diagnostics_are_capped_and_never_a_match():
    near = [candidate(0.9, id=i, category=f"Cat {i}", uom="kg") for i in range(3)]
    idx = StubIndex([], near=near)
    res = FactorMatcher(lambda: idx).match({"category": "Mystery", "unit": "kg", "scope": 1, "quantity": 1})
    assert res.status is MatchStatus.NO_MATCH
    assert res.calculated_emissions is None
    assert len(res.near_misses) == 3


# ---------- boosting ----------
def test_exact_unit_and_scope_beat_marginally_better_text():
    a = candidate(0.15, id="A", uom="kWh", scope="1", factor=0.2)
    b = candidate(0.10, id="B", uom="therms", scope="2", factor=5.3)
    idx = StubIndex([b, a])
    res = FactorMatcher(lambda: idx).match(
        {"category": "Natural Gas Heating", "unit": "kWh", "scope": 1, "quantity": 10})
    assert res.matched_factor.id == "A"
    assert res.calculated_emissions == 10 * 0.2
    assert res.score == 0.15


def test_full_agreement_wins_at_equal_raw_score():
    neither = candidate(0.2, id="neither", uom="therms", scope="2")
    unit_only = candidate(0.2, id="unit", uom="kWh", scope="2")
    scope_only = candidate(0.2, id="scope", uom="therms", scope="1")
    both = candidate(0.2, id="both", uom="kWh", scope="1")
    ranked = boost([neither, unit_only, scope_only, both], "kwh", "1")
    assert ranked[0].candidate.factor.id == "both"
    assert ranked[-1].candidate.factor.id == "neither"


def test_boost_is_not_clamped():
    exact = candidate(0.0, id="exact", uom="kWh", scope="1")
    near = candidate(0.05, id="near", uom="kWh", scope="2")
    ranked = boost([near, exact], "kwh", "1")
    assert [r.candidate.factor.id for r in ranked] == ["exact", "near"]
    assert ranked[0].boosted_score == pytest.approx(-0.2)


def test_success_always_carries_eligible_factor(matcher):
    for cat, unit in [("Diesel", "l"), ("natural gas", "kWh"), ("Electricity Grid", "kwh")]:
        res = matcher.match({"category": cat, "unit": unit, "scope": 1, "quantity": 3})
        if res.calculated_emissions is not None:
            assert res.matched_factor is not None and res.matched_factor.eligible
            assert res.calculated_emissions == 3 * res.matched_factor.conversion_factor
