from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATABASE_URL: str = "sqlite:///./routing.db"
    APP_ENV: str = "development"
    LOG_LEVEL: str = "info"

    # Comma-separated allowed origins, or "*" to allow all.
    # Example: "https://admin.example.com,https://ops.example.com"
    CORS_ORIGINS: str = "*"

    # Background sweep of expired rules. 0 disables the loop.
    PRUNE_INTERVAL_SECONDS: int = 3600
    PRUNE_ON_STARTUP: bool = True

    @property
    def cors_origins_list(self) -> list[str]:
        if self.CORS_ORIGINS.strip() == "*":
            return ["*"]
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")


settings = Settings()
