from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "sqlite:///./migration_engine.db"
    debug: bool = True
    log_level: str = "INFO"
    storage_dir: str = "./migration_uploads"

    # Upload limits
    upload_max_file_size_mb: int = 100
    large_file_warning_rows: int = 10000

    # Row sampling used by detection, mapping suggestions and preview
    sample_row_count: int = 10
    preview_row_count: int = 20
    delimiter_sample_lines: int = 20
    date_default_dayfirst: bool = False

    # Job bookkeeping
    error_sample_limit: int = 100
    rollback_window_days: int = 7

    # Pipeline cadence (rows between progress writes / cancellation checks)
    validation_yield_every: int = 1000
    import_progress_every: int = 100

    # Import throttling
    import_max_workers: int = 1  # Clamped to 1..2 by the worker pool
    row_commit_timeout_seconds: float = 30.0

    model_config = ConfigDict(env_file=".env", extra="ignore")


settings = Settings()
