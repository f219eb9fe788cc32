"""Environment-driven configuration for the Happy InLine backend."""
from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)


class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-change-me")
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///happyinline.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Auth tokens expire after 24 hours
    TOKEN_MAX_AGE = int(os.getenv("TOKEN_MAX_AGE", "86400"))

    STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY")
    STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET")

    RESEND_API_KEY = os.getenv("RESEND_API_KEY")
    EMAIL_FROM_ADDRESS = os.getenv("EMAIL_FROM_ADDRESS", "Happy InLine <noreply@happyinline.com>")

    CORS_ORIGINS = [origin.strip() for origin in os.getenv("CORS_ORIGINS", "*").split(",") if origin.strip()]
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = "test-secret"
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    STRIPE_SECRET_KEY = "sk_test_dummy"
    STRIPE_WEBHOOK_SECRET = "whsec_dummy"
    RESEND_API_KEY = None
