import argparse

from tfr_warehouse.core.config import settings
from tfr_warehouse.core.errors import RecordError
from tfr_warehouse.core.json import dumps
from tfr_warehouse.core.logging import configure_logging
from tfr_warehouse.core.sql import conn
from tfr_warehouse.others.ddls import ensure_schema
from tfr_warehouse.silver.records import RecordManager


def main(argv=None) -> int:
    p = argparse.ArgumentParser(description="Add, correct or delete TFR observations.")
    p.add_argument("--db", default=settings.DB_PATH)
    p.add_argument("--console-logs", action="store_true")
    sub = p.add_subparsers(dest="action", required=True)

    a = sub.add_parser("add", help="append the year after the latest one")
    a.add_argument("country_id", type=int)
    a.add_argument("tfr")

    u = sub.add_parser("update")
    u.add_argument("country_id", type=int)
    u.add_argument("year", type=int)
    u.add_argument("tfr")

    d = sub.add_parser("delete", help="delete an inclusive year range")
    d.add_argument("country_id", type=int)
    d.add_argument("start_year", type=int)
    d.add_argument("end_year", type=int)
    args = p.parse_args(argv)

    log = configure_logging(
        json_logs=settings.LOG_JSON and not args.console_logs, level=settings.LOG_LEVEL
    )
    con = conn(args.db)
    try:
        ensure_schema(con)
        rm = RecordManager(con, baseline_year=settings.BASELINE_YEAR, log=log)
        if args.action == "add":
            out = {"year": rm.add_next_year(args.country_id, args.tfr)}
        elif args.action == "update":
            out = {"updated": rm.update_record(args.country_id, args.year, args.tfr)}
        else:
            out = {"deleted": rm.delete_range(args.country_id, args.start_year, args.end_year)}
    except RecordError as e:
        print(dumps({"error": type(e).__name__, "message": str(e)}))
        return 2
    finally:
        con.close()
    print(dumps(out))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
