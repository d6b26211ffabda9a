from pathlib import Path

import duckdb
import pytest
import structlog

from tfr_warehouse.core.types import EtlConfig
from tfr_warehouse.others.ddls import ensure_schema

GEOGRAPHY_CSV = "\ufeff" + """name ,alpha-2,alpha-3,region, sub-region
France,FR,FRA,Europe,Western Europe
Germany,DE,DEU,Europe,Western Europe
Italy,IT,ITA,Europe,Southern Europe
Namibia,NA,NAM,Africa,Sub-Saharan Africa
Nigeria,NG,NGA,Africa,Sub-Saharan Africa
Antarctica,AQ,ATA,,
Kosovo,,XKX,Europe,
,,,Oceania,Polynesia
"""

OBSERVATIONS_CSV = """Entity,Code,Year,TFR
France,FRA,2018,1.88
France,FRA,2019,1.86
France,FRA,2020,1.83
France,FRA,2021,1.84
France,FRA,2022,1.79
Germany,DEU,2020,1.53
Germany,DEU,2021,1.58
Italy,ITA,2021,1.25
Namibia,NAM,2021,3.3
Nigeria,NGA,2021,5.2
Nigeria,NGA,2021,5.9
Bad,FRA,abc,1.5
Bad,FRA,2017,n/a
Bad,FRA,2016,16.0
Bad,FRA,2015,-0.5
Bad,,2014,2.0
Bad,FRA,1850,2.0
Unknown land,ZZZ,2021,2.0
"""


@pytest.fixture
def con():
    c = duckdb.connect(":memory:")
    ensure_schema(c)
    yield c
    c.close()


@pytest.fixture
def log():
    return structlog.get_logger("tests")


@pytest.fixture
def sources(tmp_path: Path):
    geo = tmp_path / "data2.csv"
    tfr = tmp_path / "data1.csv"
    geo.write_text(GEOGRAPHY_CSV, encoding="utf-8")
    tfr.write_text(OBSERVATIONS_CSV, encoding="utf-8")
    return geo, tfr


@pytest.fixture
def etl_cfg(tmp_path: Path, sources):
    geo, tfr = sources
    return EtlConfig(
        db_path=tmp_path / "tfr.duckdb",
        geography_path=geo,
        tfr_path=tfr,
        chunksize=4,
        health_min_records=100,
    )


def add_country(con, name, alpha3, alpha2=None, region="Europe", subregion="Western Europe"):
    con.execute(
        "INSERT INTO regions (name) SELECT ? WHERE NOT EXISTS (SELECT 1 FROM regions WHERE name = ?)",
        [region, region],
    )
    con.execute(
        """
        INSERT INTO subregions (name, region_id)
        SELECT ?, id FROM regions WHERE name = ?
          AND NOT EXISTS (SELECT 1 FROM subregions WHERE name = ?)
        """,
        [subregion, region, subregion],
    )
    con.execute(
        """
        INSERT INTO countries (name, alpha2, alpha3, subregion_id)
        SELECT ?, ?, ?, id FROM subregions WHERE name = ?
        """,
        [name, alpha2, alpha3, subregion],
    )
    return con.execute("SELECT id FROM countries WHERE alpha3 = ?", [alpha3]).fetchone()[0]


def add_records(con, country_id, pairs):
    for year, tfr in pairs:
        con.execute(
            "INSERT INTO tfr_records (country_id, year, tfr) VALUES (?, ?, ?)",
            [country_id, year, tfr],
        )
