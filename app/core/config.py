# app/core/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

DEFAULT_ALLOWED_HOSTS = [
    "api.openai.com",
    "api.hubapi.com",
    "api.stripe.com",
    "hooks.slack.com",
    "api.clearbit.com",
    "api.hunter.io",
    "apilayer.net",
    "localhost",
    "127.0.0.1",
]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore")

    ENV: str = "development"   # development | test | production
    APP_NAME: str = "Prospecter-Fichap"
    APP_URL: str = "http://localhost:3001"

    JWT_SECRET: str = Field(...)
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # DATABASE_URL tiene prioridad sobre DB_*
    DATABASE_URL: str | None = None
    DB_HOST: str = "localhost"
    DB_PORT: int = 3306
    DB_USER: str = "prospecter"
    DB_PASSWORD: str = ""
    DB_NAME: str = "prospecter"

    # 64 hex chars = clave AES-256 cruda; cualquier otro valor se deriva con SHA-256
    ENCRYPTION_KEY: str | None = None

    TOTP_WINDOW_STEPS: int = 2
    BACKUP_CODE_COUNT: int = 8
    RESET_TOKEN_TTL_MINUTES: int = 60

    RATE_LIMIT_WINDOW_MS: int = 60_000
    RATE_LIMIT_API: int = 100
    RATE_LIMIT_ADMIN: int = 20
    RATE_LIMIT_AUTH: int = 10

    ALLOWED_OUTBOUND_HOSTS: list[str] = Field(default_factory=lambda: list(DEFAULT_ALLOWED_HOSTS))
    TRUST_PROXY_HEADERS: bool = True
    CORS_ORIGINS: list[str] = Field(default_factory=lambda: ["http://localhost:3001"])

    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    @property
    def is_production(self) -> bool:
        return self.ENV.lower() == "production"

    @property
    def async_database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (f"mysql+aiomysql://{self.DB_USER}:{self.DB_PASSWORD}"
                f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}?charset=utf8mb4")


settings = Settings()  # type: ignore[call-arg]
