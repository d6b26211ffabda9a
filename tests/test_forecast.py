import pytest

from tfr_warehouse.core.errors import DegenerateFit
from tfr_warehouse.gold.forecast import ForecastEngine, fit_linear_trend
from conftest import add_country, add_records


def test_fit_recovers_exact_line():
    fit = fit_linear_trend([2018, 2019, 2020, 2021, 2022], [2.0, 1.9, 1.8, 1.7, 1.6])
    assert fit.n == 5
    assert fit.slope == pytest.approx(-0.1)
    assert fit.predict(2023) == pytest.approx(1.5)


def test_fit_with_identical_years_is_degenerate():
    with pytest.raises(DegenerateFit):
        fit_linear_trend([2020, 2020, 2020], [1.0, 2.0, 3.0])


def test_fit_rejects_mismatched_input():
    with pytest.raises(ValueError):
        fit_linear_trend([2020, 2021], [1.0])


def test_declining_country(con):
    cid = add_country(con, "France", "FRA", "FR")
    add_records(con, cid, [(2018, 2.0), (2019, 1.9), (2020, 1.8), (2021, 1.7), (2022, 1.6)])

    fc = ForecastEngine(con).forecast(cid)

    assert fc.ok
    assert fc.country == "France"
    assert [p.year for p in fc.predictions] == [2023, 2024, 2025, 2026, 2027]
    assert [p.tfr for p in fc.predictions] == pytest.approx([1.5, 1.4, 1.3, 1.2, 1.1])
    assert fc.trend == "Decreasing"
    assert fc.avg_annual_change_pct == pytest.approx(10.0)


def test_increasing_trend_label(con):
    cid = add_country(con, "Niger", "NER", "NE", "Africa", "Western Africa")
    add_records(con, cid, [(y, 6.0 + 0.05 * i) for i, y in enumerate(range(2015, 2020))])
    assert ForecastEngine(con).forecast(cid).trend == "Increasing"


def test_predictions_are_never_negative(con):
    cid = add_country(con, "Korea", "KOR", "KR", "Asia", "Eastern Asia")
    add_records(con, cid, [(2018, 1.0), (2019, 0.8), (2020, 0.6), (2021, 0.4), (2022, 0.2)])

    preds = [p.tfr for p in ForecastEngine(con).forecast(cid).predictions]
    assert min(preds) >= 0.0
    assert preds[-1] == 0.0


def test_only_recent_window_is_used(con):
    cid = add_country(con, "Japan", "JPN", "JP", "Asia", "Eastern Asia")
    # an old flat stretch followed by a steady decline
    add_records(con, cid, [(y, 3.0) for y in range(1990, 2000)])
    add_records(con, cid, [(y, 2.0 - 0.05 * (y - 2000)) for y in range(2000, 2010)])

    fc = ForecastEngine(con, window=10).forecast(cid)

    assert [h["year"] for h in fc.history] == list(range(2000, 2010))
    assert fc.slope == pytest.approx(-0.05)


def test_insufficient_history(con):
    cid = add_country(con, "Germany", "DEU", "DE")
    add_records(con, cid, [(2019, 1.5), (2020, 1.5), (2021, 1.6), (2022, 1.5)])

    fc = ForecastEngine(con).forecast(cid)

    assert fc.status == "insufficient_data"
    assert fc.predictions == []
    assert len(fc.history) == 4


def test_unknown_country(con):
    fc = ForecastEngine(con).forecast(404)
    assert fc.status == "not_found"
    assert fc.country is None


def test_payload_is_plain_python(con):
    cid = add_country(con, "France", "FRA", "FR")
    add_records(con, cid, [(2018, 2.0), (2019, 1.9), (2020, 1.8), (2021, 1.7), (2022, 1.6)])
    payload = ForecastEngine(con).forecast(cid).to_payload()
    assert payload["history"][0] == {"year": 2018, "tfr": 2.0}
    assert payload["predictions"][0]["year"] == 2023
