from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    PROJECT_NAME: str = "GST Reconciliation Service"
    LOG_LEVEL: str = "INFO"

    # Reconciliation defaults (overridable per run)
    RECON_TOLERANCE_AMOUNT: float = 5.0
    RECON_TOLERANCE_TAX: float = 1.0
    RECON_DATE_STRATEGY: str = "month"
    RECON_SCOPE: str = "all"

    # Supplier groups matched concurrently; 1 runs sequentially
    RECON_MAX_WORKERS: int = 4

    class Config:
        case_sensitive = True

settings = Settings()
