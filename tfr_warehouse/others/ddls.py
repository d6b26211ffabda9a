from tfr_warehouse.infra.duckdb.inspect import _count

CORE_TABLES = ("regions", "subregions", "countries", "tfr_records")


def create_core(con):
    con.execute("""-- ============ SEQUENCES (surrogate ids) ============
CREATE SEQUENCE IF NOT EXISTS seq_regions START 1;
CREATE SEQUENCE IF NOT EXISTS seq_subregions START 1;
CREATE SEQUENCE IF NOT EXISTS seq_countries START 1;
CREATE SEQUENCE IF NOT EXISTS seq_tfr_records START 1;

-- ============ GEOGRAPHY (append-only, written by ingestion) ============
CREATE TABLE IF NOT EXISTS regions (
  id    INTEGER PRIMARY KEY DEFAULT nextval('seq_regions'),
  name  TEXT    NOT NULL UNIQUE
);

CREATE TABLE IF NOT EXISTS subregions (
  id         INTEGER PRIMARY KEY DEFAULT nextval('seq_subregions'),
  name       TEXT    NOT NULL UNIQUE,
  region_id  INTEGER NOT NULL REFERENCES regions(id)
);

CREATE TABLE IF NOT EXISTS countries (
  id            INTEGER PRIMARY KEY DEFAULT nextval('seq_countries'),
  name          TEXT    NOT NULL,
  alpha2        TEXT,
  alpha3        TEXT    NOT NULL UNIQUE,   -- natural key for the observations file
  subregion_id  INTEGER NOT NULL REFERENCES subregions(id)
);

-- ============ OBSERVATIONS ============
CREATE TABLE IF NOT EXISTS tfr_records (
  id          INTEGER PRIMARY KEY DEFAULT nextval('seq_tfr_records'),
  country_id  INTEGER NOT NULL REFERENCES countries(id),
  year        INTEGER NOT NULL CHECK (year >= 1900 AND year <= 2100),
  tfr         DOUBLE  NOT NULL CHECK (tfr >= 0 AND tfr <= 15),
  UNIQUE (country_id, year)
);

CREATE INDEX IF NOT EXISTS idx_tfr_country_year ON tfr_records (country_id, year);
CREATE INDEX IF NOT EXISTS idx_tfr_year ON tfr_records (year);
CREATE INDEX IF NOT EXISTS idx_countries_subregion ON countries (subregion_id);
CREATE INDEX IF NOT EXISTS idx_subregions_region ON subregions (region_id);
 """)


def create_audit(con):
    con.execute("""-- One row per committed ingestion phase
CREATE TABLE IF NOT EXISTS etl_commits (
  run_id        TEXT      NOT NULL,
  phase         TEXT      NOT NULL,   -- 'geography' | 'observations'
  started_at    TIMESTAMPTZ NOT NULL,
  finished_at   TIMESTAMPTZ NOT NULL,
  rows_in       BIGINT    NOT NULL,
  rows_out      BIGINT    NOT NULL,
  rows_skipped  BIGINT    NOT NULL,
  status        TEXT      NOT NULL,
  PRIMARY KEY (run_id, phase)
); """)


def ensure_schema(con):
    create_core(con)
    create_audit(con)


def purge_invalid_records(con) -> int:
    """Drop observations written before the range checks existed."""
    predicate = """
        tfr IS NULL OR tfr < 0 OR tfr > 15
        OR year IS NULL OR year < 1900 OR year > 2100
    """
    bad = _count(con, f"SELECT COUNT(*) FROM tfr_records WHERE {predicate};")
    if bad:
        con.execute(f"DELETE FROM tfr_records WHERE {predicate};")
    return bad
