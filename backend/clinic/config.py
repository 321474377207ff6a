from pydantic_settings import BaseSettings
from pydantic import Field
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings."""

    # Database
    database_url: str = Field(default="sqlite+aiosqlite:///./clinic.db")

    # Session tokens
    jwt_secret_key: str = Field(default="change-me-in-production")
    token_expire_seconds: int = Field(default=86400)  # 24 hours

    # One-time codes
    otp_ttl_seconds: int = Field(default=600)  # 10 minutes
    otp_max_attempts: int = Field(default=3)
    otp_sweep_interval_seconds: int = Field(default=300)
    otp_rate_limit: int = Field(default=5)
    otp_rate_window_seconds: int = Field(default=900)

    # Email delivery: "smtp" | "sendgrid" | "console"
    email_provider: str = Field(default="smtp")
    smtp_host: str = Field(default="smtp.gmail.com")
    smtp_port: int = Field(default=587)
    smtp_username: str = Field(default="")
    smtp_password: str = Field(default="")
    sendgrid_api_key: str = Field(default="")
    sendgrid_api_url: str = Field(default="https://api.sendgrid.com/v3/mail/send")
    from_email: str = Field(default="no-reply@medicareclinic.com")
    from_name: str = Field(default="MediCare Clinic")

    # Reports
    clinic_name: str = Field(default="MediCare Clinic")

    # HTTP
    cors_origins: list[str] = Field(default=["*"])
    log_level: str = Field(default="INFO")

    class Config:
        env_file = ".env"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
