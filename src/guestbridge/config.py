"""Runtime settings loaded once by the entry point.

Every component receives the values it needs from a Settings instance
instead of reading the environment on its own.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_OPERA_LABEL = "Opera_revs_update"
DEFAULT_GROUPING_MODEL = "claude-sonnet-4-5"
DEFAULT_CONJUNCTION = " y "


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name, "")
    try:
        return int(raw) if raw else default
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    """Process-wide configuration.

    Attributes:
        database_url: libpq DSN or postgres:// URL for the canonical store.
        db_password: Password injected when the DSN carries none.
        db_pool_min: Minimum pooled connections.
        db_pool_max: Maximum pooled connections.
        db_checkout_timeout: Seconds a transaction waits for a free pooled
            connection before the store is reported unavailable.
        admin_api_token: Shared token for manual (operator) triggers.
        cron_secret: Shared secret for the hourly scheduler.
        google_service_account_email: Service account used for Gmail.
        google_service_account_private_key: PEM key (literal \\n tolerated).
        gmail_user_email: Mailbox impersonated by the service account.
        opera_gmail_label: Gmail label carrying Opera XML exports.
        anthropic_api_key: Key for the vendor grouping classifier.
        vendor_grouping_model: Model name used for vendor grouping.
        companion_conjunction: Separator between a guest and companion name.
    """

    database_url: str = ""
    db_password: str = ""
    db_pool_min: int = 1
    db_pool_max: int = 5
    db_checkout_timeout: int = 30
    admin_api_token: str = ""
    cron_secret: str = ""
    google_service_account_email: str = ""
    google_service_account_private_key: str = ""
    gmail_user_email: str = ""
    opera_gmail_label: str = DEFAULT_OPERA_LABEL
    anthropic_api_key: str = ""
    vendor_grouping_model: str = DEFAULT_GROUPING_MODEL
    companion_conjunction: str = DEFAULT_CONJUNCTION

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables."""
        return cls(
            database_url=os.environ.get("DATABASE_URL", ""),
            db_password=os.environ.get("DB_PASSWORD", ""),
            db_pool_min=_int_env("DB_POOL_MIN", 1),
            db_pool_max=_int_env("DB_POOL_MAX", 5),
            db_checkout_timeout=_int_env("DB_CHECKOUT_TIMEOUT", 30),
            admin_api_token=os.environ.get("ADMIN_API_TOKEN", "").strip(),
            cron_secret=os.environ.get("CRON_SECRET", "").strip(),
            google_service_account_email=os.environ.get("GOOGLE_SERVICE_ACCOUNT_EMAIL", ""),
            google_service_account_private_key=os.environ.get(
                "GOOGLE_SERVICE_ACCOUNT_PRIVATE_KEY", ""
            ),
            gmail_user_email=os.environ.get("GMAIL_USER_EMAIL", ""),
            opera_gmail_label=os.environ.get("OPERA_GMAIL_LABEL") or DEFAULT_OPERA_LABEL,
            anthropic_api_key=os.environ.get("ANTHROPIC_API_KEY", ""),
            vendor_grouping_model=os.environ.get("VENDOR_GROUPING_MODEL")
            or DEFAULT_GROUPING_MODEL,
            companion_conjunction=os.environ.get("COMPANION_CONJUNCTION")
            or DEFAULT_CONJUNCTION,
        )
