import os
import re
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return int(value)


class Settings:
    """Environment-driven application settings"""

    def __init__(self):
        self.app_env = os.getenv("APP_ENV", "development")
        self.database_url = os.getenv("DATABASE_URL", "").strip()
        self.upload_dir = os.getenv("UPLOAD_DIR", "./uploads/images")

        self.site_url = os.getenv("SITE_URL", "http://localhost:8000").rstrip("/")
        self.site_name = os.getenv("SITE_NAME", "Marginalia")
        self.site_description = os.getenv(
            "SITE_DESCRIPTION",
            "What I'm reading, and the occasional essay.",
        )

        self.secret_key = os.getenv("SECRET_KEY", "dev-secret-key")  # set in production
        self.session_ttl_minutes = _env_int("SESSION_TTL_MINUTES", 30 * 24 * 60)

        self.google_client_id = os.getenv("GOOGLE_CLIENT_ID", "")
        self.google_client_secret = os.getenv("GOOGLE_CLIENT_SECRET", "")
        self.allowed_email = os.getenv("ALLOWED_EMAIL", "").strip().lower()

        self.log_level = os.getenv("LOG_LEVEL", "INFO").upper()

    @property
    def site_slug(self) -> str:
        return re.sub(r"[^a-z0-9]+", "-", self.site_name.lower()).strip("-") or "site"


@lru_cache()
def get_settings() -> Settings:
    """Return the process-wide settings"""
    return Settings()
