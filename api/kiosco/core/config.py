from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    database_url: str
    jwt_secret: str
    jwt_algorithm: str = "HS256"
    jwt_expires_minutes: int = 1440
    bcrypt_rounds: int = 12

    seed_token: str | None = None

    reporting_timezone: str = "America/Bogota"
    low_stock_threshold: int = 3
    barcode_prefix: str = "KSK"
    barcode_max_attempts: int = 50
    internal_email_domain: str = "kiosco.local"

    expose_error_details: bool = False
    log_level: str = "INFO"
    cors_origins: list[str] = ["*"]

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


settings = Settings()
