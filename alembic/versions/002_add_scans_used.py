"""Add users.scans_used (repository scans counted against scans_limit).

Revision ID: 002_add_scans_used
Revises: 001_initial
Create Date: 2026-03-09

Checks the existing columns first, so it is safe on databases where
create_all already added it.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "002_add_scans_used"
down_revision: Union[str, None] = "001_initial"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    conn = op.get_bind()
    columns = {column["name"] for column in sa.inspect(conn).get_columns("users")}
    if "scans_used" not in columns:
        with op.batch_alter_table("users") as batch_op:
            batch_op.add_column(sa.Column("scans_used", sa.Integer(), nullable=False, server_default="0"))


def downgrade() -> None:
    with op.batch_alter_table("users") as batch_op:
        batch_op.drop_column("scans_used")
