"""Append-only sync ledger.

Every import, sync and merge run appends one row; a trigger rejects UPDATE
and DELETE.

Revision ID: 004_sync_ledger
Revises: 003_reservations
Create Date: 2026-09-08
"""
from __future__ import annotations

from pathlib import Path

from alembic import op

revision = "004_sync_ledger"
down_revision = "003_reservations"
branch_labels = None
depends_on = None

_SQL_FILE = Path(__file__).resolve().parent.parent / "sql" / "004_sync_ledger.sql"


def upgrade() -> None:
    op.execute(_SQL_FILE.read_text())


def downgrade() -> None:
    raise NotImplementedError("Downgrade not supported")
