"""Reservations fed by the Opera XML export.

opera_resv_id is unique so the feed import can upsert on it.

Revision ID: 003_reservations
Revises: 002_vendors
Create Date: 2026-09-08
"""
from __future__ import annotations

from pathlib import Path

from alembic import op

revision = "003_reservations"
down_revision = "002_vendors"
branch_labels = None
depends_on = None

_SQL_FILE = Path(__file__).resolve().parent.parent / "sql" / "003_reservations.sql"


def upgrade() -> None:
    op.execute(_SQL_FILE.read_text())


def downgrade() -> None:
    raise NotImplementedError("Downgrade not supported")
