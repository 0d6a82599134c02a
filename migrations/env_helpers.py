"""Database URL helpers for Alembic migrations.

Kept apart from env.py so they can be tested without an alembic context.
DATABASE_URL may be a URL (postgres://, postgresql://) or a libpq
key=value DSN; both become a postgresql+psycopg2:// SQLAlchemy URL.
"""

from __future__ import annotations

import os
from urllib.parse import quote_plus, urlparse, urlunparse

from psycopg2.extensions import parse_dsn

_DRIVER_PREFIX = "postgresql+psycopg2://"


def libpq_dsn_to_url(dsn: str, password_fallback: str = "") -> str:
    """Convert "dbname=x user=y host=z" into a SQLAlchemy URL.

    A host starting with "/" is a unix socket directory and moves into the
    query string.
    """
    params = parse_dsn(dsn)
    user = quote_plus(params.get("user", ""))
    password = quote_plus(params.get("password") or password_fallback)
    dbname = quote_plus(params.get("dbname", ""))
    host = params.get("host", "localhost")

    if host.startswith("/"):
        return f"{_DRIVER_PREFIX}{user}:{password}@/{dbname}?host={quote_plus(host)}"
    return f"{_DRIVER_PREFIX}{user}:{password}@{host}:{params.get('port', '5432')}/{dbname}"


def _with_password(url: str, password: str) -> str:
    parsed = urlparse(url)
    if parsed.password or not password:
        return url
    netloc = f"{quote_plus(parsed.username or '')}:{quote_plus(password)}@{parsed.hostname}"
    if parsed.port:
        netloc += f":{parsed.port}"
    return urlunparse(parsed._replace(netloc=netloc))


def sqlalchemy_url(raw: str, password_fallback: str = "") -> str:
    if "://" not in raw:
        return libpq_dsn_to_url(raw, password_fallback)
    for scheme in ("postgres://", "postgresql://"):
        if raw.startswith(scheme):
            raw = _DRIVER_PREFIX + raw[len(scheme):]
            break
    return _with_password(raw, password_fallback)


def database_url() -> str:
    """SQLAlchemy URL from DATABASE_URL, with DB_PASSWORD as fallback password."""
    raw = os.environ.get("DATABASE_URL")
    if not raw:
        raise RuntimeError("DATABASE_URL is required to run migrations")
    return sqlalchemy_url(raw, os.environ.get("DB_PASSWORD", ""))
