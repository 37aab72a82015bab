from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    database_url: str = "sqlite:///./erp_insights.db"
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    cors_origins: str = "http://localhost:3000"

    # Import
    max_upload_mb: int = 50
    # "zero" keeps the ERP behaviour (unparseable numbers count as 0),
    # "reject" sends the whole row to the import error log instead.
    malformed_numeric_policy: str = "zero"
    # Unit assumed for order / demand / inventory quantities when the file
    # does not say. Box weights (NETWT) are always kilograms.
    default_quantity_unit: str = "MT"

    # Analytics
    recent_orders_limit: int = 10
    box_threshold_multiplier: float = 10.0  # "low stock" = N average boxes
    max_potential_customers: int = 5

    # Seed data
    demo_data_dir: str = "data"

    @property
    def cors_origins_list(self) -> List[str]:
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def max_upload_size(self) -> int:
        return self.max_upload_mb * 1024 * 1024

    class Config:
        env_file = ".env"


settings = Settings()
