import numpy as np
import pandas as pd
from typing import List

BOM = "\ufeff"


def clean_header(col: str) -> str:
    # some exports carry the BOM inside the first header even after decoding
    return str(col).strip().lstrip(BOM).strip()


def normalize_cols(cols) -> list:
    return [clean_header(c) for c in cols]


_NORMALIZE = {
    "strip": lambda s: s.astype("string").str.strip(),
    "upper": lambda s: s.astype("string").str.upper(),
    "lower": lambda s: s.astype("string").str.lower(),
    "title": lambda s: s.astype("string").str.title(),
}


def _apply_normalize(series: pd.Series, ops: List[str] | None) -> pd.Series:
    if not ops:
        return series
    out = series
    for op in ops:
        if op not in _NORMALIZE:
            raise ValueError(f"Unknown normalize op: {op}")
        out = _NORMALIZE[op](out)
    return out


def blank_to_na(series: pd.Series) -> pd.Series:
    s = series.astype("string")
    return s.mask((s.str.strip() == "").fillna(False), pd.NA)


def _to_float(series: pd.Series) -> pd.Series:
    raw = series.astype("string").str.strip().fillna("").astype(object)
    return pd.to_numeric(raw, errors="coerce").astype("float64")


def _cast(series: pd.Series, typ: str) -> pd.Series:
    """Cast a string column; anything unparseable becomes NA."""
    if typ == "int":
        num = _to_float(series)
        # beyond 2**53 a float no longer holds every whole number, and Int64 overflows
        integral = np.isfinite(num) & (num == np.floor(num)) & (num.abs() < 2**53)
        return num.where(integral).astype("Int64")
    if typ in ("float", "double"):
        num = _to_float(series)
        # inf / -inf parse fine but are not usable values
        return num.where(np.isfinite(num)).astype("Float64")
    if typ in ("string", "text"):
        return series.astype("string")
    raise ValueError(f"Unsupported type in contract: {typ}")
