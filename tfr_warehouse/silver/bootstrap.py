from pathlib import Path

import duckdb

from tfr_warehouse.core.config import Settings
from tfr_warehouse.core.logging import get_logger
from tfr_warehouse.core.time import new_run_id, now_utc
from tfr_warehouse.core.types import EtlConfig, HealthStatus, IngestReport, RunRef
from tfr_warehouse.infra.duckdb.inspect import _count
from tfr_warehouse.others.ddls import ensure_schema, purge_invalid_records
from tfr_warehouse.silver.processor import IngestionProcessor


def etl_config_from(s: Settings) -> EtlConfig:
    return EtlConfig(
        db_path=Path(s.DB_PATH),
        geography_path=s.geography_path,
        tfr_path=s.tfr_path,
        chunksize=s.CSV_CHUNK_SIZE,
        health_min_records=s.HEALTH_MIN_RECORDS,
    )


def health_check(con: duckdb.DuckDBPyConnection, min_records: int) -> HealthStatus:
    """Row-count heuristic: a store with fewer observations than the threshold is cold."""
    n = _count(con, "SELECT COUNT(*) FROM tfr_records;")
    state = "cold" if n < min_records else "ready"
    return HealthStatus(state=state, record_count=n, threshold=min_records)


def startup(
    con: duckdb.DuckDBPyConnection, cfg: EtlConfig, log=None, force: bool = False
) -> IngestReport:
    """
    schema -> purge -> health check -> (ingest if cold).
    Never raises for ingestion problems; the caller keeps serving whatever is stored.
    """
    log = log or get_logger()
    ensure_schema(con)
    purged = purge_invalid_records(con)
    if purged:
        log.warning("schema.purged_invalid_records", rows=purged)

    health = health_check(con, cfg.health_min_records)
    run_id = new_run_id()
    if not health.is_cold and not force:
        log.info("store.ready", records=health.record_count)
        return IngestReport(run_id=run_id, status="skipped", reason="store ready")

    log.warning(
        "store.cold",
        records=health.record_count,
        threshold=health.threshold,
        forced=force,
    )
    proc = IngestionProcessor(log, con, cfg, RunRef(run_id=run_id, started_at=now_utc()))
    return proc.run_all()
