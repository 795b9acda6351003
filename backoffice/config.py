"""Environment driven configuration for the back office API."""
from __future__ import annotations

import os

from dotenv import load_dotenv

load_dotenv()


class Config:
    # Flask
    SECRET_KEY = os.environ.get("SECRET_KEY") or "change-me-in-production"
    DEBUG = os.environ.get("FLASK_DEBUG", "0").lower() in ("true", "1", "t")
    PORT = int(os.environ.get("PORT", 5000))

    # Database
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL") or "sqlite:///salon.db"
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # CORS
    CORS_ORIGINS = [
        origin.strip()
        for origin in os.environ.get(
            "CORS_ORIGINS",
            "http://localhost:3000,http://localhost:3001",
        ).split(",")
        if origin.strip()
    ]

    # Bearer tokens expire after 24 hours unless overridden
    TOKEN_MAX_AGE = int(os.environ.get("TOKEN_MAX_AGE", 86400))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
