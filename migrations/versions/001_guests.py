"""Canonical guests table.

Adds the write-once trigger on legacy_id and the lower() lookup indexes
used by the batch candidate query.

Revision ID: 001_guests
Revises: None
Create Date: 2026-09-01
"""
from __future__ import annotations

from pathlib import Path

from alembic import op

revision = "001_guests"
down_revision = None
branch_labels = None
depends_on = None

_SQL_FILE = Path(__file__).resolve().parent.parent / "sql" / "001_guests.sql"


def upgrade() -> None:
    op.execute(_SQL_FILE.read_text())


def downgrade() -> None:
    raise NotImplementedError("Downgrade not supported")
