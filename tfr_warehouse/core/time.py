from datetime import datetime, timezone
import time
import uuid


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def new_run_id() -> str:
    # sortable by start time; the suffix keeps two runs in one second apart
    return f"{now_utc():%Y%m%dT%H%M%S}-{uuid.uuid4().hex[:6]}"


class StageTimer:
    def __enter__(self):
        self.t0 = time.perf_counter()
        self.duration_sec = None
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.duration_sec = round(time.perf_counter() - self.t0, 3)
