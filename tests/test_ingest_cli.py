import json

import duckdb

from tfr_warehouse.silver.ingest_cli import main


def test_cli_builds_store_from_data_root(tmp_path, sources, capsys):
    geo, _ = sources
    db = tmp_path / "out" / "tfr.duckdb"

    rc = main(["--db", str(db), "--data-root", str(geo.parent), "--console-logs"])

    assert rc == 0
    report = json.loads(capsys.readouterr().out)
    assert report["status"] == "completed"
    assert report["observations"]["inserted"]["tfr_records"] == 10

    con = duckdb.connect(str(db))
    try:
        assert con.execute("SELECT COUNT(*) FROM countries").fetchone()[0] == 6
    finally:
        con.close()


def test_cli_reports_missing_files(tmp_path, capsys):
    rc = main(["--db", str(tmp_path / "tfr.duckdb"), "--data-root", str(tmp_path / "empty")])
    assert rc == 1
    report = json.loads(capsys.readouterr().out)
    assert report["status"] == "aborted"
    assert "data2.csv" in report["reason"]
