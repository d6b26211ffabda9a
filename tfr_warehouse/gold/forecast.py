from typing import Sequence

import duckdb
import numpy as np

from tfr_warehouse.core.errors import DegenerateFit
from tfr_warehouse.core.logging import get_logger
from tfr_warehouse.core.types import Forecast, Prediction, TrendFit


def fit_linear_trend(years: Sequence[float], values: Sequence[float]) -> TrendFit:
    """
    Ordinary least squares for value = slope * year + intercept, from the
    closed-form sums (sum x, sum y, sum xy, sum x^2).
    """
    x = np.asarray(years, dtype="float64")
    y = np.asarray(values, dtype="float64")
    if x.shape != y.shape or x.size == 0:
        raise ValueError("years and values must be non-empty and of equal length")

    n = x.size
    sum_x, sum_y = x.sum(), y.sum()
    sum_xy, sum_x2 = (x * y).sum(), (x * x).sum()

    denom = n * sum_x2 - sum_x * sum_x
    if denom == 0:
        raise DegenerateFit(f"cannot fit a trend over {n} identical x values")

    slope = (n * sum_xy - sum_x * sum_y) / denom
    intercept = (sum_y - slope * sum_x) / n
    return TrendFit(n=int(n), slope=float(slope), intercept=float(intercept))


class ForecastEngine:
    def __init__(
        self,
        con: duckdb.DuckDBPyConnection,
        window: int = 10,
        min_years: int = 5,
        horizon: int = 5,
    ):
        self.con = con
        self.window = window
        self.min_years = min_years
        self.horizon = horizon
        self.log = get_logger().bind(mod="forecast")

    def forecast(self, country_id: int) -> Forecast:
        row = self.con.execute(
            "SELECT name FROM countries WHERE id = ?", [country_id]
        ).fetchone()
        if row is None:
            return Forecast(country_id=country_id, country=None, status="not_found")

        # most recent `window` years, flipped back to chronological order
        hist = self.con.execute(
            f"""
            SELECT year, tfr FROM (
              SELECT year, tfr FROM tfr_records
              WHERE country_id = ?
              ORDER BY year DESC
              LIMIT {int(self.window)}
            ) ORDER BY year ASC
            """,
            [country_id],
        ).df()

        out = Forecast(
            country_id=country_id,
            country=row[0],
            status="ok",
            history=hist.to_dict("records"),
        )
        if len(hist) < self.min_years:
            out.status = "insufficient_data"
            self.log.info(
                "forecast.insufficient_data",
                country_id=country_id,
                years=len(hist),
                needed=self.min_years,
            )
            return out

        fit = fit_linear_trend(hist["year"], hist["tfr"])
        last_year = int(hist["year"].iloc[-1])
        out.predictions = [
            Prediction(year=y, tfr=max(0.0, fit.predict(y)))
            for y in range(last_year + 1, last_year + 1 + self.horizon)
        ]
        out.slope, out.intercept = fit.slope, fit.intercept
        out.trend = "Increasing" if fit.slope > 0 else "Decreasing"
        out.avg_annual_change_pct = abs(fit.slope) * 100
        return out
