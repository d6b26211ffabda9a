import duckdb
from typing import List


def _count(con: duckdb.DuckDBPyConnection, sql: str, params: list | None = None) -> int:
    return con.execute(sql, params or []).fetchone()[0]


def _index_names(con: duckdb.DuckDBPyConnection, table: str) -> List[str]:
    rows = con.execute(
        "SELECT index_name FROM duckdb_indexes() WHERE table_name = ? ORDER BY index_name",
        [table],
    ).fetchall()
    return [r[0] for r in rows]
