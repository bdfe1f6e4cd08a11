"""OTP Gateway — configuration loaded from environment."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application-wide settings, loaded from .env or environment variables."""

    # ── OTP policy ────────────────────────────────────────
    otp_length: int = 6
    otp_ttl_seconds: int = 600
    otp_max_attempts: int = 0  # 0 disables the failed-attempt limit
    otp_reissue_cooldown_seconds: int = 0  # 0 keeps plain overwrite on re-issue
    otp_echo_code: bool = False  # testing only: include the code in /otp/send

    # ── Challenge store ───────────────────────────────────
    store_backend: str = "memory"  # memory | redis | sql
    store_timeout_seconds: float = 2.0
    redis_url: str = "redis://localhost:6379/0"
    redis_key_prefix: str = "otp:"
    database_url: str = "sqlite+aiosqlite:///./otp_gateway.db"

    # ── Notifiers ─────────────────────────────────────────
    email_provider: str = "console"  # console | smtp | http
    sms_provider: str = "console"  # console | twilio
    notifier_timeout_seconds: float = 10.0

    email_from: str = "noreply@example.com"
    smtp_host: str = "localhost"
    smtp_port: int = 587
    smtp_username: str = ""
    smtp_password: str = ""
    smtp_start_tls: bool = True

    email_api_url: str = "https://api.sendgrid.com/v3/mail/send"
    email_api_key: str = ""

    twilio_account_sid: str = ""
    twilio_auth_token: str = ""
    twilio_from_number: str = ""
    twilio_api_base_url: str = "https://api.twilio.com/2010-04-01"

    # ── App ───────────────────────────────────────────────
    app_name: str = "OTP Gateway"
    debug: bool = False

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


# Singleton settings instance
settings = Settings()
