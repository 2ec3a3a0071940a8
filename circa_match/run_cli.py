"""Command-line entry point: match entries, recalculate a company, check factor status."""
import argparse
import json
import logging
import sys
import time

from . import config
from .api import match_batch
from .index import IndexCache
from .matcher import FactorMatcher
from .output import status_counts, summarise
from .recalc import recalculate_company
from .status import check_factor_status, run_diagnostics


def _store(args):
    if args.db_url:
        from .store import SqlFactorStore
        return SqlFactorStore.from_url(args.db_url)
    from db_loader import apply_overrides, get_factor_store
    from settings.settings import settings
    apply_overrides(settings)
    return get_factor_store(settings)


def _load_entries(args):
    if args.entries:
        with open(args.entries, encoding="utf-8") as fh:
            data = json.load(fh)
        if not isinstance(data, list):
            raise SystemExit("entries file must hold a JSON array")
        return data
    return [{"category": args.category, "unit": args.unit,
             "scope": args.scope, "quantity": args.quantity}]


def cmd_match(args) -> int:
    store = _store(args)
    entries = _load_entries(args)
    matcher = FactorMatcher.for_store(store, source=args.source, cache=IndexCache.for_store(store))

    t_start = time.time()
    results = match_batch(entries, matcher)
    for idx, res in enumerate(results, 1):
        print(f"{idx}.", summarise(res))
    print(f"\n{status_counts(results)}  [{time.time() - t_start:.2f}s]")
    return 0


def cmd_recalc(args) -> int:
    summary = recalculate_company(_store(args), args.company_id, source=args.source)
    print(summary.message)
    if summary.failed_rows:
        print(f"{summary.failed_rows} entries failed")
    return 0


def cmd_status(args) -> int:
    store = _store(args)
    status = check_factor_status(store, args.company_id)
    diag = run_diagnostics(store, args.company_id)
    print(f"Preferred source: {status['preferred_source']}")
    for item in status["data"]:
        have = [s["source"] for s in item["available_sources"] if s["has_data"]]
        print(f"  {item['category']} / {item['unit']} (scope {item['scope']}): {', '.join(have) or '—'}")
    for log in diag["logs"]:
        print(f"  ! {log['log_message']}")
    return 0


def _scope(value: str):
    return int(value) if value.strip().isdigit() else value


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="circa-match")
    p.add_argument("--db-url", help="SQLAlchemy URL (defaults to settings / .env)")
    p.add_argument("-v", "--verbose", action="store_true")
    sub = p.add_subparsers(dest="command", required=True)

    m = sub.add_parser("match", help="match entries against a source")
    m.add_argument("--source", default=None, help=f"factor source (default {config.DEFAULT_SOURCE})")
    m.add_argument("--entries", help="JSON file with an array of entries")
    m.add_argument("--category")
    m.add_argument("--unit")
    m.add_argument("--scope", type=_scope)
    m.add_argument("--quantity", type=float)
    m.set_defaults(func=cmd_match)

    r = sub.add_parser("recalc", help="recalculate a company's entries")
    r.add_argument("company_id")
    r.add_argument("--source", default=None)
    r.set_defaults(func=cmd_recalc)

    s = sub.add_parser("status", help="factor availability for a company")
    s.add_argument("company_id")
    s.set_defaults(func=cmd_status)
    return p


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
