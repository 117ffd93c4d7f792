import logging
import os
import sys

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Settings:
    """Runtime configuration read from the environment."""

    def __init__(self):
        self.database_url = os.getenv("DATABASE_URL", "sqlite:///./secondhand.db")

        self.secret_key = os.getenv("SECRET_KEY", "change-me-in-production-please-32b")
        self.algorithm = os.getenv("ALGORITHM", "HS256")
        self.access_token_expire_minutes = int(
            os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 24 * 7))
        )

        self.otp_expiry_minutes = int(os.getenv("OTP_EXPIRY_MINUTES", "10"))

        self.email_host = os.getenv("EMAIL_HOST", "smtp.gmail.com")
        self.email_port = int(os.getenv("EMAIL_PORT", "587"))
        self.email_host_user = os.getenv("EMAIL_HOST_USER")
        self.email_host_password = os.getenv("EMAIL_HOST_PASSWORD")

        self.log_level = os.getenv("LOG_LEVEL", "INFO").upper()
        self.cors_origins = [
            origin.strip()
            for origin in os.getenv(
                "CORS_ORIGINS",
                "http://localhost:5173,http://localhost:5174,http://localhost:3000",
            ).split(",")
            if origin.strip()
        ]


settings = Settings()


def setup_logging():
    """Configures the root logger once."""
    root = logging.getLogger()
    if any(getattr(h, "_secondhand", False) for h in root.handlers):
        return
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    )
    handler._secondhand = True
    root.addHandler(handler)
    root.setLevel(settings.log_level)
