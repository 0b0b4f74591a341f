"""Application configuration."""
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./fpa.db"

    # Application
    APP_ENV: str = "development"
    API_V1_PREFIX: str = "/api"
    LOG_LEVEL: str = "INFO"

    # Frontend
    FRONTEND_URL: str = "http://localhost:3000"

    # Financial model - undisturbed scenario figures
    BASE_REVENUE: float = 100_000_000
    BASE_COSTS: float = 75_000_000
    BASELINE_REVENUE_GROWTH: float = 0.15  # fraction, not percent
    BASELINE_COST_INFLATION: float = 0.03
    LABOR_COST_SHARE: float = 0.6  # share of the cost base driven by headcount
    MARKETING_REFERENCE_SPEND: float = 2_500_000
    MARKETING_ROI: float = 5.0

    # Analysis
    DEFAULT_ASSUMPTION_RANGE: float = 0.2  # +/- fraction of base_value when bounds are absent
    HISTOGRAM_BINS: int = 20
    SIMULATION_SEED: Optional[int] = None

    # Pagination
    DEFAULT_PAGE_LIMIT: int = 20
    MAX_PAGE_LIMIT: int = 100

    # CORS
    @property
    def ALLOWED_ORIGINS(self) -> List[str]:
        if self.APP_ENV == "development":
            return ["*"]  # Allow all origins in development
        return [self.FRONTEND_URL, "http://localhost:3000"]

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )


settings = Settings()
