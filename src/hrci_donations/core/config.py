from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache

class Settings(BaseSettings):

    API_BASE_URL: str = "http://localhost:3000"
    HTTP_TIMEOUT_SECONDS: float = 30.0
    HTTP_DEBUG: bool = False
    # Applies to general REST calls only; the payment pipeline never retries
    HTTP_MAX_RETRIES: int = 2

    RAZORPAY_KEY_ID: str = ""
    ORG_NAME: str = "HRCI"
    THEME_COLOR: str = "#1D0DA1"

    PUBLIC_CHECKOUT_THRESHOLD: float = 10000
    CREATE_DONATION_THRESHOLD: float = 1000

    AWS_REGION: str = "ap-south-1"
    ORDER_JOURNAL_TABLE_NAME: str = ""

    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

@lru_cache()
def get_settings() -> Settings:
    return Settings()
