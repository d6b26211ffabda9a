import argparse

from tfr_warehouse.core.config import settings
from tfr_warehouse.core.json import dumps
from tfr_warehouse.core.logging import configure_logging
from tfr_warehouse.core.sql import conn
from tfr_warehouse.silver.bootstrap import etl_config_from, startup


def main(argv=None) -> int:
    p = argparse.ArgumentParser(description="Create the TFR store and load it when cold.")
    p.add_argument("--db", default=settings.DB_PATH)
    p.add_argument("--data-root", default=settings.DATA_ROOT)
    p.add_argument("--force", action="store_true", help="ingest even if the store is ready")
    p.add_argument("--console-logs", action="store_true")
    p.add_argument("--log-level", default=settings.LOG_LEVEL)
    args = p.parse_args(argv)

    log = configure_logging(
        json_logs=settings.LOG_JSON and not args.console_logs, level=args.log_level
    )
    s = settings.model_copy(update={"DB_PATH": args.db, "DATA_ROOT": args.data_root})
    cfg = etl_config_from(s)

    con = conn(cfg.db_path)
    try:
        report = startup(con, cfg, log=log, force=args.force)
    finally:
        con.close()
    print(dumps(report))
    return 0 if report.status in ("completed", "skipped") else 1


if __name__ == "__main__":
    raise SystemExit(main())
