from pathlib import Path
from typing import Iterator, Mapping

import pandas as pd
import structlog

from tfr_warehouse.core.dq.source_policy import DQBuilderSource
from tfr_warehouse.core.errors import MissingSourceFile, SourceReadError
from tfr_warehouse.core.miscelannious import normalize_cols

log = structlog.get_logger("tfr_warehouse.bronze")

_READ_ERRORS = (
    OSError,
    UnicodeDecodeError,
    pd.errors.ParserError,
    pd.errors.EmptyDataError,
)


def check_sources(sources: Mapping[str, Path]) -> None:
    """Fail fast on the first missing source, naming where it was expected."""
    for label, path in sources.items():
        if not Path(path).is_file():
            log.error("source.missing", source=label, expected_path=str(path))
            raise MissingSourceFile(path, label)


def read_source(path: Path, chunksize: int | None = None) -> Iterator[pd.DataFrame]:
    """
    Stream a delimited file as all-string DataFrames with cleaned headers.
    keep_default_na=False keeps codes such as 'NA' (Namibia) as plain text.
    """
    path = Path(path)
    try:
        reader = pd.read_csv(
            path,
            dtype=str,
            keep_default_na=False,
            encoding="utf-8-sig",
            chunksize=chunksize or 10_000,
        )
        with reader:
            for chunk in reader:
                chunk.columns = normalize_cols(chunk.columns)
                yield chunk
    except _READ_ERRORS as e:
        log.error("source.read_failed", path=str(path), error=repr(e))
        raise SourceReadError(path, e) from e


def read_all(path: Path, chunksize: int | None = None) -> pd.DataFrame:
    frames = list(read_source(path, chunksize))
    if not frames:
        return pd.DataFrame()
    return pd.concat(frames, ignore_index=True)


def peek_headers(path: Path) -> list:
    path = Path(path)
    try:
        head = pd.read_csv(path, dtype=str, nrows=0, encoding="utf-8-sig")
    except _READ_ERRORS as e:
        raise SourceReadError(path, e) from e
    return normalize_cols(head.columns)


def validate_source(path: Path, contract: dict) -> None:
    """Header-level DQ gate; a file missing a required column is unreadable for us."""
    path = Path(path)
    metrics = {"path": str(path), "bytes": path.stat().st_size}
    if metrics["bytes"] > 0:
        metrics["headers"] = peek_headers(path)
    dq = DQBuilderSource(metrics, contract)
    log.debug("source.dq", path=str(path), dq_passed=dq.passed, dq_level=dq.level)
    if not dq.passed:
        raise SourceReadError(path, ValueError(", ".join(dq.metrics["reasons"])))
