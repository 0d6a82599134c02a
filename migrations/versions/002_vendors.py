"""Vendors and their dependent records.

transfers and tour_products reference vendors.id; vendor_users keeps one
active account per email under a vendor (partial unique index).

Revision ID: 002_vendors
Revises: 001_guests
Create Date: 2026-09-01
"""
from __future__ import annotations

from pathlib import Path

from alembic import op

revision = "002_vendors"
down_revision = "001_guests"
branch_labels = None
depends_on = None

_SQL_FILE = Path(__file__).resolve().parent.parent / "sql" / "002_vendors.sql"


def upgrade() -> None:
    op.execute(_SQL_FILE.read_text())


def downgrade() -> None:
    raise NotImplementedError("Downgrade not supported")
