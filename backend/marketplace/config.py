"""
marketplace/config.py - Application configuration and lazy Firebase initialization.

This module defines a Pydantic BaseSettings class to load configuration from environment,
and exposes a helper that initializes the Firebase Admin SDK the first time an ID token
has to be verified. All other modules import `settings` from here.
"""
import os
from decimal import Decimal
from typing import Optional

import firebase_admin
from firebase_admin import credentials
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    database_url: str = "sqlite:///./marketplace.db"
    debug: bool = False
    allowed_origins: str = "*"  # Comma-separated list or '*' for all
    log_level: str = "INFO"

    # Firebase (authentication collaborator)
    firebase_cred_file: Optional[str] = None
    firebase_project_id: Optional[str] = None
    allow_mock_tokens: bool = False  # accept mock_jwt_token_<uid> (development / tests)

    # Checkout pipeline
    signing_secret: str = "GHW25-058"
    platform_fee_rate: Decimal = Decimal("0.017")
    platform_fee_offset: Decimal = Decimal("58")
    idempotency_ttl_seconds: int = 300
    idempotency_sweep_minutes: int = 5
    checkout_rate_limit: int = 7
    checkout_rate_window_seconds: int = 60

    request_log_capacity: int = 50


# Load settings from environment (.env file, etc.)
settings = Settings()


def get_firebase_app() -> firebase_admin.App:
    """
    Returns the default Firebase app, initializing it on first use.
    Service account file if configured, application default credentials otherwise.
    """
    try:
        return firebase_admin.get_app()
    except ValueError:
        pass

    if settings.firebase_cred_file and os.path.exists(settings.firebase_cred_file):
        cred = credentials.Certificate(settings.firebase_cred_file)
    else:
        cred = credentials.ApplicationDefault()
    options = {"projectId": settings.firebase_project_id} if settings.firebase_project_id else None

    try:
        return firebase_admin.initialize_app(cred, options)
    except ValueError as e:
        if "already exists" in str(e):
            # Another thread initialized it first
            return firebase_admin.get_app()
        raise
