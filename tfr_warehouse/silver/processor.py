from typing import Callable, Dict, Iterable

import duckdb
import pandas as pd

from tfr_warehouse.bronze.extract import check_sources, read_all, read_source, validate_source
from tfr_warehouse.core.errors import IngestionError
from tfr_warehouse.core.time import StageTimer, now_utc
from tfr_warehouse.core.types import (
    EtlConfig,
    IngestReport,
    PhaseCommit,
    PhaseSummary,
    RunRef,
)
from tfr_warehouse.infra.duckdb.inspect import _count
from tfr_warehouse.silver.harmonizer import (
    harmonize_geography,
    harmonize_observations,
    load_contract,
)


def insert_commit(con, ev: PhaseCommit):
    """Audit row for a committed phase; re-running the same run_id/phase is a no-op."""
    con.execute(
        """
        INSERT INTO etl_commits
        SELECT ?,?,?,?,?,?,?,?
        WHERE NOT EXISTS (
          SELECT 1 FROM etl_commits WHERE run_id = ? AND phase = ?
        );
        """,
        [
            ev.run.run_id,
            ev.phase,
            ev.run.started_at,
            ev.finished_at,
            ev.rows_in,
            ev.rows_out,
            ev.rows_skipped,
            ev.status,
            ev.run.run_id,
            ev.phase,
        ],
    )


def in_transaction(con, log, work: Callable[[], Dict[str, int]]) -> Dict[str, int]:
    con.execute("BEGIN;")
    try:
        out = work()
        con.execute("COMMIT;")
        return out
    except Exception:
        con.execute("ROLLBACK;")
        log.exception("transaction failed; rolled back")
        raise


def _table_counts(con, tables: Iterable[str]) -> Dict[str, int]:
    return {t: _count(con, f"SELECT COUNT(*) FROM {t};") for t in tables}


class IngestionProcessor:
    """
    Two-phase CSV load: geography first (it owns the alpha-3 natural key),
    then observations resolved against it. Each phase is one transaction.
    """

    def __init__(self, log, con: duckdb.DuckDBPyConnection, cfg: EtlConfig, run: RunRef):
        self.con = con
        self.cfg = cfg
        self.run = run
        self.log = log.bind(run_id=run.run_id)
        self.geo_contract = load_contract("geography")
        self.obs_contract = load_contract("observations")

    def run_all(self) -> IngestReport:
        report = IngestReport(run_id=self.run.run_id, status="aborted")
        self.log.info("etl.start", geography=str(self.cfg.geography_path), tfr=str(self.cfg.tfr_path))
        try:
            with StageTimer() as t:
                check_sources(
                    {
                        "geography": self.cfg.geography_path,
                        "observations": self.cfg.tfr_path,
                    }
                )
                report.geography = self.load_geography()
                # phase 2 only runs once phase 1 has committed
                report.observations = self.load_observations()
            report.status = "completed"
            report.duration_sec = t.duration_sec
        except (IngestionError, duckdb.Error) as e:
            report.reason = str(e)
            self.log.error("etl.aborted", reason=report.reason)
            return report

        self.log.info(
            "etl.done",
            loaded=report.loaded,
            skipped=report.skipped,
            unmatched=report.observations.rows_unmatched,
            duration_sec=report.duration_sec,
        )
        return report

    # ---- phase 1 ------------------------------------------------------------
    def load_geography(self) -> PhaseSummary:
        plog = self.log.bind(phase="geography")
        path = self.cfg.geography_path
        validate_source(path, self.geo_contract)

        df_raw = read_all(path, self.cfg.chunksize)
        df_geo, rejects, dq = harmonize_geography(df_raw, self.geo_contract)
        plog.info("etl.geography.extracted", rows_in=dq["rows_in"], rows_valid=dq["rows_valid"])

        def work():
            before = _table_counts(self.con, ("regions", "subregions", "countries"))
            self._insert_geography(df_geo)
            after = _table_counts(self.con, ("regions", "subregions", "countries"))
            inserted = {k: after[k] - before[k] for k in after}
            insert_commit(
                self.con,
                PhaseCommit(
                    run=self.run,
                    phase="geography",
                    rows_in=dq["rows_in"],
                    rows_out=inserted["countries"],
                    rows_skipped=len(rejects),
                    finished_at=now_utc(),
                ),
            )
            return inserted

        inserted = in_transaction(self.con, plog, work)
        unmatched = len(df_geo) - self._resolved_countries(df_geo)
        summary = PhaseSummary(
            rows_in=dq["rows_in"],
            rows_valid=dq["rows_valid"],
            rows_skipped=len(rejects),
            rows_unmatched=unmatched,
            inserted=inserted,
        )
        plog.info("etl.geography.done", **inserted, skipped=len(rejects))
        return summary

    def _insert_geography(self, df_geo: pd.DataFrame) -> None:
        if df_geo.empty:
            return
        stage = df_geo.astype(object).where(df_geo.notna(), None)
        stage["rn"] = range(len(stage))
        self.con.register("geo_stage", stage)
        try:
            self.con.execute("""
                INSERT INTO regions (name)
                SELECT DISTINCT s.region
                FROM geo_stage s
                WHERE NOT EXISTS (SELECT 1 FROM regions r WHERE r.name = s.region);
            """)
            # a subregion name seen under two regions keeps the first one
            self.con.execute("""
                INSERT INTO subregions (name, region_id)
                SELECT f.sub_region, r.id
                FROM (
                  SELECT sub_region, region,
                         ROW_NUMBER() OVER (PARTITION BY sub_region ORDER BY rn) AS k
                  FROM geo_stage
                ) f
                JOIN regions r ON r.name = f.region
                WHERE f.k = 1
                  AND NOT EXISTS (SELECT 1 FROM subregions x WHERE x.name = f.sub_region);
            """)
            self.con.execute("""
                INSERT INTO countries (name, alpha2, alpha3, subregion_id)
                SELECT s.name, s.alpha2, s.alpha3, sr.id
                FROM geo_stage s
                JOIN subregions sr ON sr.name = s.sub_region
                WHERE NOT EXISTS (SELECT 1 FROM countries c WHERE c.alpha3 = s.alpha3);
            """)
        finally:
            self.con.unregister("geo_stage")

    def _resolved_countries(self, df_geo: pd.DataFrame) -> int:
        if df_geo.empty:
            return 0
        self.con.register("geo_codes", df_geo[["alpha3"]].astype(str))
        try:
            return _count(
                self.con,
                "SELECT COUNT(*) FROM geo_codes g JOIN countries c ON c.alpha3 = g.alpha3;",
            )
        finally:
            self.con.unregister("geo_codes")

    # ---- phase 2 ------------------------------------------------------------
    def load_observations(self) -> PhaseSummary:
        plog = self.log.bind(phase="observations")
        path = self.cfg.tfr_path
        validate_source(path, self.obs_contract)
        summary = PhaseSummary()

        def work():
            before = _count(self.con, "SELECT COUNT(*) FROM tfr_records;")
            for chunk in read_source(path, self.cfg.chunksize):
                df_obs, _rejects, dq = harmonize_observations(chunk, self.obs_contract)
                summary.rows_in += dq["rows_in"]
                summary.rows_valid += dq["rows_valid"]
                summary.rows_skipped += dq["rows_rejected"]
                summary.rows_unmatched += self._insert_observations(df_obs)
                plog.debug("etl.observations.chunk", **{k: v for k, v in dq.items() if k != "reasons"})
            inserted = _count(self.con, "SELECT COUNT(*) FROM tfr_records;") - before
            insert_commit(
                self.con,
                PhaseCommit(
                    run=self.run,
                    phase="observations",
                    rows_in=summary.rows_in,
                    rows_out=inserted,
                    rows_skipped=summary.rows_skipped,
                    finished_at=now_utc(),
                ),
            )
            return {"tfr_records": inserted}

        summary.inserted = in_transaction(self.con, plog, work)
        plog.info(
            "etl.observations.done",
            loaded=summary.inserted["tfr_records"],
            skipped=summary.rows_skipped,
            unmatched=summary.rows_unmatched,
        )
        return summary

    def _insert_observations(self, df_obs: pd.DataFrame) -> int:
        """Insert one harmonized chunk; returns how many rows had an unknown country code."""
        if df_obs.empty:
            return 0
        stage = df_obs.assign(
            code=df_obs["code"].astype(str),
            year=df_obs["year"].astype("int64"),
            tfr=df_obs["tfr"].astype("float64"),
        )
        self.con.register("obs_stage", stage)
        try:
            unmatched = _count(self.con, """
                SELECT COUNT(*) FROM obs_stage o
                WHERE NOT EXISTS (SELECT 1 FROM countries c WHERE c.alpha3 = o.code);
            """)
            self.con.execute("""
                INSERT INTO tfr_records (country_id, year, tfr)
                SELECT c.id, o.year, o.tfr
                FROM obs_stage o
                JOIN countries c ON c.alpha3 = o.code
                WHERE NOT EXISTS (
                  SELECT 1 FROM tfr_records t
                  WHERE t.country_id = c.id AND t.year = o.year
                );
            """)
        finally:
            self.con.unregister("obs_stage")
        return unmatched
