from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    DB_PATH: str = "warehouse/tfr_database.duckdb"
    DATA_ROOT: str = "./data"
    GEOGRAPHY_FILE: str = "data2.csv"
    TFR_FILE: str = "data1.csv"
    CSV_CHUNK_SIZE: int = 5000

    # below this many observations the store is treated as cold
    HEALTH_MIN_RECORDS: int = 100
    BASELINE_YEAR: int = 2023

    FORECAST_WINDOW: int = 10
    FORECAST_MIN_YEARS: int = 5
    FORECAST_HORIZON: int = 5

    DEFAULT_RANKING_YEAR: int = 2021
    DEFAULT_MAP_YEAR: int = 2023
    TREND_START_YEAR: int = 1950
    TREND_END_YEAR: int = 2023

    LOG_JSON: bool = True
    LOG_LEVEL: str = "INFO"
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    @property
    def geography_path(self) -> Path:
        return Path(self.DATA_ROOT) / self.GEOGRAPHY_FILE

    @property
    def tfr_path(self) -> Path:
        return Path(self.DATA_ROOT) / self.TFR_FILE


settings = Settings()
