# backend/economica/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/economica.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",  # optional alternative location
        "sqlite:///economica.sqlite3",  # default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    CORS_ALLOWED_ORIGINS = {
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://localhost:8080",
    }

    # Basis points applied to (subtotal - discount); 1600 = 16% IVA
    TAX_RATE_BPS = int(os.environ.get("TAX_RATE_BPS", "0"))

    # One loyalty point per $10 spent
    LOYALTY_CENTS_PER_POINT = int(os.environ.get("LOYALTY_CENTS_PER_POINT", "1000"))

    TEMP_PERMISSION_DEFAULT_MINUTES = 120
    TEMP_PERMISSION_MAX_MINUTES = 1440

    # POS terminal -> backing service
    SERVICE_BASE_URL = os.environ.get("SERVICE_BASE_URL", "http://localhost:5000/api")
    SERVICE_TIMEOUT_SECONDS = float(os.environ.get("SERVICE_TIMEOUT_SECONDS", "10"))

    DEMO_SEED_ENABLED = os.environ.get("DEMO_SEED_ENABLED", "false").lower() == "true"
