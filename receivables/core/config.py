from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    APP_NAME: str = "Pharma Receivables"
    version: str = "0.1.0"
    DEBUG: bool = False
    APP_DATABASE_DSN: str = "sqlite:////tmp/receivables.db"

    # Logging
    LOG_LEVEL: str = "INFO"

    # Document numbering
    PAYMENT_NUMBER_PREFIX: str = "PMT"
    INVOICE_NUMBER_PREFIX: str = "INV"

    # All amounts of an invoice and its payments share this currency
    DEFAULT_CURRENCY: str = "USD"

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


settings = Settings()
