from pathlib import Path
from typing import Dict, Any, Tuple

import pandas as pd

from tfr_warehouse.core.json import load_schema
from tfr_warehouse.core.miscelannious import _apply_normalize, _cast, blank_to_na

CONTRACTS_DIR = Path(__file__).resolve().parents[1] / "contracts"


def load_contract(entity: str) -> dict:
    return load_schema(CONTRACTS_DIR / f"{entity}.yaml")


def apply_contract(
    df_raw: pd.DataFrame, contract: dict
) -> Tuple[pd.DataFrame, pd.DataFrame, Dict[str, Any]]:
    """
    Rename -> normalize -> default/fallback -> cast -> validate -> dedupe.
    Returns (valid rows, rejected raw rows with reject_reasons, metrics).
    Never raises on bad data; a malformed row only ends up in the rejects.
    """
    columns = contract["contract"]["columns"]
    pk = contract["contract"].get("primary_key", [])

    # 1) rename + normalize; missing source columns become all-NA
    df = pd.DataFrame(index=df_raw.index)
    for col in columns:
        found = next((s for s in col.get("source", []) if s in df_raw.columns), None)
        if found is None:
            df[col["name"]] = pd.Series(pd.NA, index=df_raw.index, dtype="string")
            continue
        s = _apply_normalize(df_raw[found].astype("string"), col.get("normalize"))
        df[col["name"]] = blank_to_na(s)

    # 2) defaults, casts and per-column checks
    flags: Dict[str, Any] = {}
    for col in columns:
        name = col["name"]
        raw = df[name]
        if "default" in col:
            raw = raw.fillna(col["default"])
        if col.get("fallback"):
            raw = raw.fillna(df[col["fallback"]])
        typed = _cast(raw, col.get("type", "string"))
        present = raw.notna().to_numpy(dtype=bool)

        if col.get("required"):
            flags[f"{name}_missing"] = ~present
        flags[f"{name}_unparseable"] = present & typed.isna().to_numpy(dtype=bool)
        if col.get("range"):
            lo, hi = col["range"]
            out = ((typed < lo) | (typed > hi)).fillna(False)
            flags[f"{name}_out_of_range"] = out.to_numpy(dtype=bool)
        df[name] = typed

    flag_df = pd.DataFrame(flags, index=df.index)
    bad = flag_df.any(axis=1) if not flag_df.empty else pd.Series(False, index=df.index)

    rejects = df_raw.loc[bad].copy()
    rejects["reject_reasons"] = [
        ";".join(flag_df.columns[row]) for row in flag_df.loc[bad].to_numpy()
    ]

    # 3) one row per natural key, first occurrence wins
    df_ok = df.loc[~bad]
    dup = df_ok.duplicated(subset=pk, keep="first") if pk else None
    n_dup = int(dup.sum()) if dup is not None else 0
    if n_dup:
        df_ok = df_ok.loc[~dup]

    metrics = {
        "rows_in": len(df_raw),
        "rows_valid": len(df_ok),
        "rows_rejected": int(bad.sum()),
        "duplicates": n_dup,
        "reasons": {k: int(v.sum()) for k, v in flags.items() if v.any()},
    }
    return df_ok.reset_index(drop=True), rejects, metrics


def harmonize_geography(df_raw: pd.DataFrame, contract: dict | None = None):
    return apply_contract(df_raw, contract or load_contract("geography"))


def harmonize_observations(df_raw: pd.DataFrame, contract: dict | None = None):
    return apply_contract(df_raw, contract or load_contract("observations"))
