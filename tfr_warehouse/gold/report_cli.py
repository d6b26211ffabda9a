import argparse

from tfr_warehouse.core.config import settings
from tfr_warehouse.core.errors import ValidationFailure
from tfr_warehouse.core.json import dumps
from tfr_warehouse.core.logging import configure_logging
from tfr_warehouse.core.sql import conn
from tfr_warehouse.gold.forecast import ForecastEngine
from tfr_warehouse.gold.queries import TfrQueries
from tfr_warehouse.others.ddls import ensure_schema


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Read-side reports over the TFR store.")
    p.add_argument("--db", default=settings.DB_PATH)
    p.add_argument("--console-logs", action="store_true")
    sub = p.add_subparsers(dest="report", required=True)

    sub.add_parser("stats")
    sub.add_parser("countries")
    sub.add_parser("regions")
    sub.add_parser("subregions")

    h = sub.add_parser("history")
    h.add_argument("country_id", type=int)

    r = sub.add_parser("ranking")
    r.add_argument("subregion_id", type=int)
    r.add_argument("--year", type=int, default=settings.DEFAULT_RANKING_YEAR)

    a = sub.add_parser("averages")
    a.add_argument("region_id", type=int)
    a.add_argument("--year", type=int, default=settings.DEFAULT_RANKING_YEAR)

    t = sub.add_parser("trends")
    t.add_argument("--start", type=int, default=settings.TREND_START_YEAR)
    t.add_argument("--end", type=int, default=settings.TREND_END_YEAR)

    c = sub.add_parser("compare")
    c.add_argument("country_a", type=int)
    c.add_argument("country_b", type=int)

    m = sub.add_parser("map")
    m.add_argument("--year", type=int, default=settings.DEFAULT_MAP_YEAR)

    s = sub.add_parser("search")
    s.add_argument("term")
    s.add_argument("--year", type=int, default=settings.DEFAULT_MAP_YEAR)

    f = sub.add_parser("forecast")
    f.add_argument("country_id", type=int)
    return p


def run_report(con, args):
    q = TfrQueries(con)
    if args.report == "stats":
        return q.dataset_stats()
    if args.report == "countries":
        return q.countries()
    if args.report == "regions":
        return q.regions()
    if args.report == "subregions":
        return q.subregions()
    if args.report == "history":
        return q.history(args.country_id)
    if args.report == "ranking":
        return q.subregion_ranking(args.subregion_id, args.year)
    if args.report == "averages":
        return q.region_averages(args.region_id, args.year)
    if args.report == "trends":
        return q.global_trends(args.start, args.end)
    if args.report == "compare":
        return q.compare(args.country_a, args.country_b)
    if args.report == "map":
        snap = q.map_snapshot(args.year)
        return {"year": snap.year, "status": snap.status, "bands": snap.band_counts, "rows": snap.rows}
    if args.report == "search":
        return q.search(args.term, args.year)
    if args.report == "forecast":
        engine = ForecastEngine(
            con,
            window=settings.FORECAST_WINDOW,
            min_years=settings.FORECAST_MIN_YEARS,
            horizon=settings.FORECAST_HORIZON,
        )
        return engine.forecast(args.country_id).to_payload()
    raise ValueError(f"unknown report {args.report!r}")


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(
        json_logs=settings.LOG_JSON and not args.console_logs, level=settings.LOG_LEVEL
    )

    con = conn(args.db)
    try:
        ensure_schema(con)
        out = run_report(con, args)
    except ValidationFailure as e:
        print(dumps({"error": type(e).__name__, "message": str(e)}))
        return 2
    finally:
        con.close()
    print(dumps(out))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
