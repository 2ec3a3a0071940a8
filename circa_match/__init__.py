from .models import EmissionEntry, EmissionFactor, MatchResult, MatchStatus
from .index import FactorIndex, IndexCache, build_index
from .matcher import FactorMatcher, validate_entry
from .api import match_batch, match_entries
from .store import FactorStoreError, SqlFactorStore, SupabaseFactorStore
