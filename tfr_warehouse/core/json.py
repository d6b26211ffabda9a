import yaml
import json
import math
import decimal
from dataclasses import asdict, is_dataclass
from pathlib import Path
from datetime import datetime, date
import numpy as np
import pandas as pd


def load_schema(path: Path) -> dict:
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f)


def dumps(data) -> str:
    """JSON for reports and payloads: dataclasses, numpy scalars and NA are all handled."""
    return json.dumps(data, ensure_ascii=False, indent=2, default=_json_default)


def _json_default(o):
    if is_dataclass(o) and not isinstance(o, type):
        return asdict(o)
    # datetimes / dates (incl. pandas.Timestamp)
    if isinstance(o, (pd.Timestamp, datetime, date)):
        return o.isoformat()
    if isinstance(o, np.integer):
        return int(o)
    if isinstance(o, np.floating):
        return None if (math.isnan(o) or math.isinf(o)) else float(o)
    if isinstance(o, np.bool_):
        return bool(o)
    if o is pd.NA:
        return None
    if isinstance(o, pd.DataFrame):
        return o.astype(object).where(o.notna(), None).to_dict("records")
    if isinstance(o, decimal.Decimal):
        return float(o)
    if isinstance(o, Path):
        return str(o)
    return str(o)
