# circa_match/config.py
# Matching tunables. Read at call time, so app start-up overrides apply.

DEFAULT_SOURCE = "DEFRA"
KNOWN_SOURCES = ("DEFRA", "EPA", "IPCC", "GHG Protocol Default", "ADEME")

# ---------- primary search ----------
THRESHOLD = 0.4              # 0 = exact, 1 = anything
MIN_MATCH_CHAR_LENGTH = 3
SEARCH_LIMIT = 10

# ---------- no-match diagnostics ----------
DIAG_THRESHOLD = 1.0
DIAG_MIN_MATCH_CHAR_LENGTH = 1
DIAG_TOP_N = 3

# ---------- tie-break boosts (subtracted from score) ----------
UNIT_BOOST = 0.1
SCOPE_BOOST = 0.1

# ---------- store layout ----------
FACTORS_TABLE = "emission_factors"
ENTRIES_TABLE = "emission_entries"
PREFERENCES_TABLE = "company_preferences"
FACTOR_SOURCE_COL = "source"
