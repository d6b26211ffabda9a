from pathlib import Path


class TfrError(Exception):
    """Base class for every error raised by tfr_warehouse."""


# ---- ingestion ----------------------------------------------------------
class IngestionError(TfrError):
    pass


class MissingSourceFile(IngestionError):
    def __init__(self, path: Path, label: str):
        self.path = Path(path)
        self.label = label
        super().__init__(f"missing {label} file, expected at {self.path}")


class SourceReadError(IngestionError):
    def __init__(self, path: Path, cause: Exception):
        self.path = Path(path)
        self.cause = cause
        super().__init__(f"could not read {self.path}: {cause!r}")


# ---- record management --------------------------------------------------
class RecordError(TfrError):
    pass


class ValidationFailure(RecordError, ValueError):
    pass


class ConstraintViolation(RecordError):
    def __init__(self, country_id: int, year: int):
        self.country_id = country_id
        self.year = year
        super().__init__(f"record for country {country_id} in {year} already exists")


class NotFound(RecordError, LookupError):
    pass


# ---- analytics ----------------------------------------------------------
class DegenerateFit(TfrError, ArithmeticError):
    """All x values are identical; the least-squares slope is undefined."""
