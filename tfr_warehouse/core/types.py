from dataclasses import dataclass, asdict, field
from typing import List, Optional, Dict, Any
from datetime import datetime
from pathlib import Path

import pandas as pd


@dataclass(frozen=True)
class EtlConfig:
    db_path: Path
    geography_path: Path
    tfr_path: Path
    chunksize: int = 5000
    health_min_records: int = 100


@dataclass
class DQResult:
    passed: bool
    level: str = "MINOR"  # "MINOR"|"CRITICAL"
    metrics: dict = None  # e.g., {"headers": [...], "reasons": []}


@dataclass
class RunRef:
    run_id: str
    started_at: datetime


@dataclass
class PhaseCommit:
    run: RunRef
    phase: str  # "geography" | "observations"
    rows_in: int
    rows_out: int
    rows_skipped: int
    finished_at: datetime
    status: str = "committed"


@dataclass
class HealthStatus:
    state: str  # "ready" | "cold"
    record_count: int
    threshold: int

    @property
    def is_cold(self) -> bool:
        return self.state == "cold"


@dataclass
class PhaseSummary:
    rows_in: int = 0
    rows_valid: int = 0
    rows_skipped: int = 0
    rows_unmatched: int = 0
    inserted: Dict[str, int] = field(default_factory=dict)


@dataclass
class IngestReport:
    run_id: str
    status: str  # "completed" | "aborted" | "skipped"
    geography: PhaseSummary = field(default_factory=PhaseSummary)
    observations: PhaseSummary = field(default_factory=PhaseSummary)
    reason: Optional[str] = None
    duration_sec: Optional[float] = None

    @property
    def loaded(self) -> int:
        return self.observations.inserted.get("tfr_records", 0)

    @property
    def skipped(self) -> int:
        return self.observations.rows_skipped


@dataclass
class Comparison:
    country_a: int
    country_b: int
    name_a: Optional[str]
    name_b: Optional[str]
    years: List[int]
    series_a: List[Optional[float]]
    series_b: List[Optional[float]]
    latest_common_year: Optional[int] = None
    latest_a: Optional[float] = None
    latest_b: Optional[float] = None
    pct_difference: Optional[float] = None
    status: str = "ok"  # "ok" | "no_data"

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            {"year": self.years, "tfr_a": self.series_a, "tfr_b": self.series_b}
        )


@dataclass
class MapSnapshot:
    year: int
    rows: pd.DataFrame  # alpha2, country, tfr, band
    status: str = "ok"  # "ok" | "no_data"

    @property
    def band_counts(self) -> Dict[str, int]:
        if self.rows.empty:
            return {}
        return {str(k): int(v) for k, v in self.rows["band"].value_counts().items()}


@dataclass
class TrendFit:
    n: int
    slope: float
    intercept: float

    def predict(self, year: int) -> float:
        return self.slope * year + self.intercept


@dataclass
class Prediction:
    year: int
    tfr: float


@dataclass
class Forecast:
    country_id: int
    country: Optional[str]
    status: str  # "ok" | "insufficient_data" | "not_found"
    history: List[Dict[str, Any]] = field(default_factory=list)
    predictions: List[Prediction] = field(default_factory=list)
    slope: Optional[float] = None
    intercept: Optional[float] = None
    trend: Optional[str] = None  # "Increasing" | "Decreasing"
    avg_annual_change_pct: Optional[float] = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    def to_payload(self) -> Dict[str, Any]:
        d = asdict(self)
        d["history"] = [
            {"year": int(h["year"]), "tfr": float(h["tfr"])} for h in self.history
        ]
        return d
