from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./schoolbridge.db"
    SECRET_KEY: str = "dev-secret-access"
    REFRESH_SECRET_KEY: str = "dev-secret-refresh"
    JWT_ALGORITHM: str = "HS256"
    JWT_ISSUER: str = "schoolbridge-api"
    JWT_AUDIENCE: str = "schoolbridge-app"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 24 * 60
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7
    LOG_LEVEL: str = "INFO"
    DEBUG: bool = False

    # Rate limiting: memory:// for a single process, redis://... when scaled out
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_STORAGE_URI: str = "memory://"
    AUTH_RATE_LIMIT: str = "10/15 minutes"

    # Invitations
    INVITATION_TTL_HOURS: int = 72
    MOBILE_ACTIVATION_URL: str = "schoolbridge://activate"
    WEB_APP_URL: str = "http://localhost:8081"

    # Outbound email; an empty SMTP_HOST disables delivery
    SMTP_HOST: str = ""
    SMTP_PORT: int = 587
    SMTP_USERNAME: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_USE_TLS: bool = True
    SMTP_TIMEOUT: int = 10
    EMAIL_FROM: str = "SchoolBridge <no-reply@schoolbridge.edu>"

    # Background jobs
    SCHEDULER_ENABLED: bool = True
    CLEANUP_HOUR: int = 3

    CORS_ORIGINS: list[str] = ["http://localhost:19000", "http://localhost:19006"]

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
