# backend/manuerp/config.py
from __future__ import annotations
import os
from datetime import timedelta


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # Signing secret for credentials; shares SECRET_KEY unless set separately
    JWT_SECRET = os.environ.get("JWT_SECRET", SECRET_KEY)
    JWT_ALGORITHM = "HS256"

    SESSION_TOKEN_TTL = timedelta(hours=24)
    PASSWORD_RESET_TOKEN_TTL = timedelta(hours=1)
    EMAIL_VERIFICATION_TOKEN_TTL = timedelta(hours=24)

    # SQLite DB stored in backend/instance/manuerp.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///manuerp.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Frontend base URL used to build verification and reset links
    CLIENT_URL = os.environ.get("CLIENT_URL", "http://localhost:5173")

    CORS_ORIGINS = {
        "http://localhost:3000",
        "http://localhost:5173",
        "http://localhost:8080",
        "http://localhost:8081",
    }
