import math

import pytest

from tfr_warehouse.core.errors import ConstraintViolation, NotFound, ValidationFailure
from tfr_warehouse.silver.records import RecordManager, validate_tfr
from conftest import add_country, add_records


class StaleMax:
    """Connection wrapper that reports an out-of-date MAX(year), as a concurrent writer would see it."""

    def __init__(self, con, stale_year):
        self._con = con
        self._stale = stale_year

    def execute(self, sql, params=None):
        if sql.startswith("SELECT MAX(year)"):
            return self._con.execute("SELECT ?::INTEGER", [self._stale])
        return self._con.execute(sql, params or [])


@pytest.fixture
def fra(con):
    cid = add_country(con, "France", "FRA", "FR")
    add_records(con, cid, [(2020, 1.83), (2021, 1.84), (2022, 1.79)])
    return cid


def _years(con, cid):
    return [
        r[0]
        for r in con.execute(
            "SELECT year FROM tfr_records WHERE country_id = ? ORDER BY year", [cid]
        ).fetchall()
    ]


def test_add_next_year_follows_latest(con, fra):
    rm = RecordManager(con)
    assert rm.add_next_year(fra, 1.75) == 2023
    assert rm.add_next_year(fra, "1.7") == 2024
    assert _years(con, fra)[-2:] == [2023, 2024]


def test_add_next_year_without_history_uses_baseline(con):
    cid = add_country(con, "Germany", "DEU", "DE")
    assert RecordManager(con, baseline_year=2023).add_next_year(cid, 1.5) == 2024


def test_add_next_year_unknown_country(con):
    with pytest.raises(NotFound):
        RecordManager(con).add_next_year(404, 1.5)


@pytest.mark.parametrize("bad", [-0.1, 15.01, "abc", None, math.nan, math.inf])
def test_invalid_tfr_rejected(con, fra, bad):
    with pytest.raises(ValidationFailure):
        RecordManager(con).add_next_year(fra, bad)
    assert _years(con, fra) == [2020, 2021, 2022]


def test_next_year_past_upper_bound_rejected(con):
    cid = add_country(con, "Italy", "ITA", "IT")
    add_records(con, cid, [(2100, 1.2)])
    with pytest.raises(ValidationFailure):
        RecordManager(con).add_next_year(cid, 1.3)


def test_conflicting_insert_surfaces_as_constraint_violation(con, fra):
    rm = RecordManager(StaleMax(con, 2021))
    with pytest.raises(ConstraintViolation) as exc:
        rm.add_next_year(fra, 1.6)
    assert exc.value.year == 2022
    assert con.execute(
        "SELECT tfr FROM tfr_records WHERE country_id = ? AND year = 2022", [fra]
    ).fetchone()[0] == pytest.approx(1.79)


def test_update_existing_record(con, fra):
    assert RecordManager(con).update_record(fra, 2021, 1.9) == 1
    assert con.execute(
        "SELECT tfr FROM tfr_records WHERE country_id = ? AND year = 2021", [fra]
    ).fetchone()[0] == pytest.approx(1.9)


def test_update_missing_record(con, fra):
    with pytest.raises(NotFound):
        RecordManager(con).update_record(fra, 1990, 1.9)


def test_update_validates_value(con, fra):
    with pytest.raises(ValidationFailure):
        RecordManager(con).update_record(fra, 2021, 20)


def test_delete_range_is_inclusive(con, fra):
    assert RecordManager(con).delete_range(fra, 2020, 2021) == 2
    assert _years(con, fra) == [2022]


def test_delete_range_with_no_match_returns_zero(con, fra):
    assert RecordManager(con).delete_range(fra, 1950, 1960) == 0
    assert len(_years(con, fra)) == 3


def test_delete_range_reversed_bounds(con, fra):
    with pytest.raises(ValidationFailure):
        RecordManager(con).delete_range(fra, 2022, 2020)


def test_validate_tfr_bounds_inclusive():
    assert validate_tfr(0) == 0.0
    assert validate_tfr("15") == 15.0


@pytest.mark.parametrize("start,end", [("abc", 2020), (2020, None), (2020.5, 2021)])
def test_delete_range_rejects_non_integer_years(con, fra, start, end):
    with pytest.raises(ValidationFailure):
        RecordManager(con).delete_range(fra, start, end)
    assert len(_years(con, fra)) == 3


def test_update_does_not_truncate_fractional_year(con, fra):
    with pytest.raises(ValidationFailure):
        RecordManager(con).update_record(fra, 2020.7, 1.9)
    assert con.execute(
        "SELECT tfr FROM tfr_records WHERE country_id = ? AND year = 2020", [fra]
    ).fetchone()[0] == pytest.approx(1.83)


def test_whole_valued_float_year_is_accepted(con, fra):
    assert RecordManager(con).update_record(fra, 2021.0, 1.9) == 1
