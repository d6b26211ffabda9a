import math

import duckdb

from tfr_warehouse.core.errors import ConstraintViolation, NotFound, ValidationFailure
from tfr_warehouse.core.logging import get_logger

YEAR_MIN, YEAR_MAX = 1900, 2100
TFR_MIN, TFR_MAX = 0.0, 15.0


def validate_tfr(tfr) -> float:
    try:
        value = float(tfr)
    except (TypeError, ValueError):
        raise ValidationFailure(f"TFR must be a number, got {tfr!r}") from None
    if not math.isfinite(value) or not (TFR_MIN <= value <= TFR_MAX):
        raise ValidationFailure(f"TFR must be between {TFR_MIN:g} and {TFR_MAX:g}")
    return value


def as_year(year) -> int:
    """Whole-number years only; 2020.7 is an error, not 2020."""
    try:
        num = float(year)
    except (TypeError, ValueError):
        raise ValidationFailure(f"year must be an integer, got {year!r}") from None
    if not num.is_integer():
        raise ValidationFailure(f"year must be an integer, got {year!r}")
    return int(num)


def validate_year(year) -> int:
    value = as_year(year)
    if not (YEAR_MIN <= value <= YEAR_MAX):
        raise ValidationFailure(f"year must be between {YEAR_MIN} and {YEAR_MAX}")
    return value


class RecordManager:
    """Write side for observations after the initial load."""

    def __init__(self, con: duckdb.DuckDBPyConnection, baseline_year: int = 2023, log=None):
        self.con = con
        self.baseline_year = baseline_year
        self.log = (log or get_logger()).bind(mod="records")

    def add_next_year(self, country_id: int, tfr) -> int:
        """Insert at MAX(year)+1 (baseline+1 without history). Returns the new year."""
        value = validate_tfr(tfr)
        self._require_country(country_id)
        row = self.con.execute(
            "SELECT MAX(year) FROM tfr_records WHERE country_id = ?", [country_id]
        ).fetchone()
        current_max = row[0] if row and row[0] is not None else self.baseline_year
        next_year = validate_year(current_max + 1)

        try:
            self.con.execute(
                "INSERT INTO tfr_records (country_id, year, tfr) VALUES (?, ?, ?)",
                [country_id, next_year, value],
            )
        except duckdb.ConstraintException as e:
            # the unique (country_id, year) key is the only concurrency guard
            self.log.warning("record.conflict", country_id=country_id, year=next_year)
            raise ConstraintViolation(country_id, next_year) from e

        self.log.info("record.added", country_id=country_id, year=next_year, tfr=value)
        return next_year

    def update_record(self, country_id: int, year: int, tfr) -> int:
        value = validate_tfr(tfr)
        year = validate_year(year)
        rows = self.con.execute(
            "UPDATE tfr_records SET tfr = ? WHERE country_id = ? AND year = ? RETURNING id",
            [value, country_id, year],
        ).fetchall()
        if not rows:
            raise NotFound(f"no record for country {country_id} in {year}")
        self.log.info("record.updated", country_id=country_id, year=year, tfr=value)
        return len(rows)

    def delete_range(self, country_id: int, start_year: int, end_year: int) -> int:
        """Delete [start_year, end_year] inclusive; zero matches is a normal outcome."""
        start, end = as_year(start_year), as_year(end_year)
        if start > end:
            raise ValidationFailure(f"start year {start} is after end year {end}")
        rows = self.con.execute(
            """
            DELETE FROM tfr_records
            WHERE country_id = ? AND year >= ? AND year <= ?
            RETURNING id
            """,
            [country_id, start, end],
        ).fetchall()
        self.log.info(
            "record.deleted", country_id=country_id, start=start, end=end, rows=len(rows)
        )
        return len(rows)

    def _require_country(self, country_id: int) -> None:
        hit = self.con.execute(
            "SELECT 1 FROM countries WHERE id = ?", [country_id]
        ).fetchone()
        if hit is None:
            raise NotFound(f"unknown country id {country_id}")
