from pathlib import Path

import duckdb


def conn(db_path: str | Path | None = None) -> duckdb.DuckDBPyConnection:
    if db_path and str(db_path) != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    return duckdb.connect(database=str(db_path) if db_path else ":memory:")
