from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATABASE_URL: str = "sqlite:///./stepstreak.db"
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    # Comma-separated allowed origins, or "*" to allow all.
    # Example: "https://myapp.com,https://api.myapp.com"
    CORS_ORIGINS: str = "*"

    # Calendar used to decide what "today" is and which day a timestamp falls on.
    # "local" = system timezone, otherwise an IANA name such as "Europe/Madrid".
    TIMEZONE: str = "local"

    # Defaults applied when the goal settings / bonus ledger rows do not exist yet.
    DEFAULT_DAILY_GOAL: int = 10_000
    BONUS_MAX_BALANCE: int = 3
    BONUS_EARN_EVERY_N: int = 7

    @property
    def cors_origins_list(self) -> list[str]:
        if self.CORS_ORIGINS.strip() == "*":
            return ["*"]
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


settings = Settings()
