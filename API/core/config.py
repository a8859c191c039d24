"""
Application configuration.

Values come from environment variables (optionally loaded from a .env file).
Tests build isolated instances with Settings.from_env({...}).
"""

import logging
import os
from typing import List, Mapping, Optional

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

_DEV_SECRET = "dev-secret-change-me"


def _bool(value: Optional[str], default: bool = False) -> bool:
    if value is None or str(value).strip() == "":
        return default
    return str(value).strip().lower() in ("1", "true", "yes", "on")


class Settings:
    """Runtime settings for the station admin API."""

    def __init__(self, env: Mapping[str, str]):
        get = env.get

        self.app_name = get("APP_NAME", "Station Admin API")
        self.debug = _bool(get("DEBUG"), False)

        # Database
        self.database_url = get("DATABASE_URL", "sqlite:///./station_admin.db")

        # JWT
        self.secret_key = get("SECRET_KEY", _DEV_SECRET)
        self.algorithm = get("JWT_ALGORITHM", "HS256")
        self.access_token_expire_minutes = int(get("ACCESS_TOKEN_EXPIRE_MINUTES", "720"))

        # CORS
        self.cors_origins = get("CORS_ORIGINS", "http://localhost:3000")

        # OTP
        self.otp_ttl_minutes = int(get("OTP_TTL_MINUTES", "10"))
        self.otp_verify_max_attempts = int(get("OTP_VERIFY_MAX_ATTEMPTS", "5"))
        self.otp_verify_window_seconds = int(get("OTP_VERIFY_WINDOW_SECONDS", "300"))

        # Login throttling
        self.login_max_attempts = int(get("LOGIN_MAX_ATTEMPTS", "20"))
        self.login_window_seconds = int(get("LOGIN_WINDOW_SECONDS", "300"))

        # Expiry sweeper
        self.attempt_stale_minutes = int(get("LOGIN_ATTEMPT_STALE_MINUTES", "60"))
        self.sweep_interval_seconds = int(get("SWEEP_INTERVAL_SECONDS", "3600"))
        self.sweeper_enabled = _bool(get("SWEEPER_ENABLED"), True)

        # Mail
        self.smtp_host = get("SMTP_HOST", "localhost")
        self.smtp_port = int(get("SMTP_PORT", "25"))
        self.smtp_username = get("SMTP_USERNAME", "")
        self.smtp_password = get("SMTP_PASSWORD", "")
        self.smtp_use_tls = _bool(get("SMTP_USE_TLS"), False)
        self.mail_from = get("MAIL_FROM", "no-reply@localhost")

        # Geolocation
        self.geo_ip_url = get("GEO_IP_URL", "http://ip-api.com/json/{ip}")
        self.reverse_geocode_url = get(
            "REVERSE_GEOCODE_URL", "https://nominatim.openstreetmap.org/reverse"
        )
        self.geo_timeout_seconds = float(get("GEO_TIMEOUT_SECONDS", "3.0"))

        # Bootstrap super admin (first run only)
        self.super_admin_email = get("SUPER_ADMIN_EMAIL", "")
        self.super_admin_password = get("SUPER_ADMIN_PASSWORD", "")
        self.super_admin_first_name = get("SUPER_ADMIN_FIRST_NAME", "Super")
        self.super_admin_last_name = get("SUPER_ADMIN_LAST_NAME", "Admin")

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        instance = cls(os.environ if env is None else env)
        if instance.secret_key == _DEV_SECRET:
            logger.warning("SECRET_KEY is not set, using the development default")
        return instance

    @property
    def cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


settings = Settings.from_env()
