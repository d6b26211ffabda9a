from __future__ import annotations
from typing import Dict, Any, Optional

import duckdb
import numpy as np
import pandas as pd

from tfr_warehouse.core.errors import ValidationFailure
from tfr_warehouse.core.types import Comparison, MapSnapshot
from tfr_warehouse.others.ddls import CORE_TABLES

REPLACEMENT_LEVEL = 2.1

# (lower bound inclusive, label), checked top-down
TFR_BANDS = [
    (3.0, "High"),
    (REPLACEMENT_LEVEL, "Above replacement"),
    (1.5, "Replacement"),
    (float("-inf"), "Low"),
]
NO_DATA = "No Data"


def classify_tfr(value: Optional[float]) -> str:
    if value is None or (isinstance(value, float) and np.isnan(value)):
        return NO_DATA
    for lower, label in TFR_BANDS:
        if value >= lower:
            return label
    return NO_DATA


def _opt(v) -> Optional[float]:
    return None if v is None or pd.isna(v) else float(v)


class TfrQueries:
    """Read side over the normalized store. Empty frames mean 'no data', never an error."""

    def __init__(self, con: duckdb.DuckDBPyConnection):
        self.con = con

    # ---- pickers (ids, never names) ----------------------------------------
    def countries(self) -> pd.DataFrame:
        return self.con.execute(
            "SELECT id, name, alpha2, alpha3, subregion_id FROM countries ORDER BY name, id"
        ).df()

    def regions(self) -> pd.DataFrame:
        return self.con.execute("SELECT id, name FROM regions ORDER BY name").df()

    def subregions(self) -> pd.DataFrame:
        return self.con.execute(
            "SELECT id, name, region_id FROM subregions ORDER BY name"
        ).df()

    def country_name(self, country_id: int) -> Optional[str]:
        row = self.con.execute(
            "SELECT name FROM countries WHERE id = ?", [country_id]
        ).fetchone()
        return row[0] if row else None

    # ---- per-country ----------------------------------------------------------
    def history(self, country_id: int) -> pd.DataFrame:
        return self.con.execute(
            """
            SELECT year, tfr
            FROM tfr_records
            WHERE country_id = ?
            ORDER BY year ASC
            """,
            [country_id],
        ).df()

    def search(self, term: str, year: int, limit: int = 20) -> pd.DataFrame:
        term = (term or "").strip()
        if len(term) < 2:
            return pd.DataFrame(columns=["country_id", "country", "tfr", "year"])
        # limit is an int, safe to inline
        return self.con.execute(
            f"""
            SELECT c.id AS country_id, c.name AS country, t.tfr, t.year
            FROM countries c
            JOIN tfr_records t ON c.id = t.country_id
            WHERE c.name ILIKE ? AND t.year = ?
            ORDER BY c.name, c.id
            LIMIT {int(limit)}
            """,
            [f"%{term}%", year],
        ).df()

    # ---- rankings and averages --------------------------------------------------
    def subregion_ranking(self, subregion_id: int, year: int) -> pd.DataFrame:
        return self.con.execute(
            """
            SELECT c.id AS country_id, c.name AS country, t.tfr
            FROM countries c
            JOIN tfr_records t ON c.id = t.country_id
            WHERE c.subregion_id = ? AND t.year = ?
            ORDER BY t.tfr ASC, c.name
            """,
            [subregion_id, year],
        ).df()

    def region_averages(self, region_id: int, year: int) -> pd.DataFrame:
        return self.con.execute(
            """
            SELECT s.id AS subregion_id, s.name AS subregion, AVG(t.tfr) AS avg_tfr
            FROM subregions s
            JOIN countries c ON s.id = c.subregion_id
            JOIN tfr_records t ON c.id = t.country_id
            WHERE s.region_id = ? AND t.year = ?
            GROUP BY s.id, s.name
            ORDER BY s.name
            """,
            [region_id, year],
        ).df()

    # ---- multi-region trend -----------------------------------------------------
    def global_trends(self, start_year: int, end_year: int) -> pd.DataFrame:
        if start_year > end_year:
            raise ValidationFailure(f"start year {start_year} is after end year {end_year}")
        return self.con.execute(
            """
            SELECT r.id AS region_id, r.name AS region, t.year, AVG(t.tfr) AS avg_tfr
            FROM regions r
            JOIN subregions s ON r.id = s.region_id
            JOIN countries c ON s.id = c.subregion_id
            JOIN tfr_records t ON c.id = t.country_id
            WHERE t.year BETWEEN ? AND ?
            GROUP BY r.id, r.name, t.year
            ORDER BY r.name, t.year
            """,
            [start_year, end_year],
        ).df()

    def trend_matrix(self, start_year: int, end_year: int) -> pd.DataFrame:
        """Region x year, every year in range as a column; missing points stay NaN."""
        long = self.global_trends(start_year, end_year)
        years = list(range(int(start_year), int(end_year) + 1))
        if long.empty:
            return pd.DataFrame(columns=years, dtype="float64")
        wide = long.pivot(index="region", columns="year", values="avg_tfr")
        return wide.reindex(columns=years).astype("float64")

    # ---- comparison -------------------------------------------------------------
    def compare(self, country_a: int, country_b: int) -> Comparison:
        if country_a == country_b:
            raise ValidationFailure("comparison needs two different countries")

        rows = self.con.execute(
            """
            SELECT country_id, year, tfr
            FROM tfr_records
            WHERE country_id IN (?, ?)
            ORDER BY year ASC
            """,
            [country_a, country_b],
        ).df()

        a = rows.loc[rows["country_id"] == country_a].set_index("year")["tfr"]
        b = rows.loc[rows["country_id"] == country_b].set_index("year")["tfr"]
        years = sorted(set(a.index) | set(b.index))

        cmp = Comparison(
            country_a=country_a,
            country_b=country_b,
            name_a=self.country_name(country_a),
            name_b=self.country_name(country_b),
            years=[int(y) for y in years],
            series_a=[_opt(a.get(y)) for y in years],
            series_b=[_opt(b.get(y)) for y in years],
        )
        if not years:
            cmp.status = "no_data"
            return cmp

        common = sorted(set(a.index) & set(b.index))
        if common:
            y = common[-1]
            cmp.latest_common_year = int(y)
            cmp.latest_a, cmp.latest_b = float(a[y]), float(b[y])
            if cmp.latest_b != 0:
                cmp.pct_difference = (cmp.latest_a - cmp.latest_b) / cmp.latest_b * 100
        return cmp

    # ---- map --------------------------------------------------------------------
    def map_snapshot(self, year: int) -> MapSnapshot:
        df = self.con.execute(
            """
            SELECT c.id AS country_id, upper(c.alpha2) AS alpha2, c.name AS country, t.tfr
            FROM countries c
            LEFT JOIN tfr_records t ON c.id = t.country_id AND t.year = ?
            WHERE c.alpha2 IS NOT NULL AND trim(c.alpha2) <> ''
            ORDER BY c.name
            """,
            [year],
        ).df()
        df["band"] = [classify_tfr(_opt(v)) for v in df["tfr"]]
        status = "ok" if df["tfr"].notna().any() else "no_data"
        return MapSnapshot(year=int(year), rows=df, status=status)

    # ---- stats --------------------------------------------------------------------
    def record_count(self) -> int:
        return self.con.execute("SELECT COUNT(*) FROM tfr_records").fetchone()[0]

    def dataset_stats(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            t: self.con.execute(f"SELECT COUNT(*) FROM {t}").fetchone()[0]
            for t in CORE_TABLES
        }
        min_year, max_year, avg_tfr = self.con.execute(
            "SELECT MIN(year), MAX(year), AVG(tfr) FROM tfr_records"
        ).fetchone()
        out.update(min_year=min_year, max_year=max_year, avg_tfr=_opt(avg_tfr))
        return out

