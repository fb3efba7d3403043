"""initial schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- daily_activity ---
    op.create_table(
        "daily_activity",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("day", sa.Date(), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("source", sa.String(32), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint("amount >= 0", name="ck_daily_activity_amount_non_negative"),
    )
    op.create_index("ix_daily_activity_day", "daily_activity", ["day"], unique=True)

    # --- day_records ---
    op.create_table(
        "day_records",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("day", sa.Date(), nullable=False),
        sa.Column("goal", sa.Integer(), nullable=False),
        sa.Column("actual", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("bonus_used", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("bonus_earned", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint("goal > 0", name="ck_day_records_goal_positive"),
    )
    op.create_index("ix_day_records_day", "day_records", ["day"], unique=True)

    # --- bonus_ledger (singleton, id = 1) ---
    op.create_table(
        "bonus_ledger",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("balance", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("max_balance", sa.Integer(), nullable=False, server_default="3"),
        sa.Column("earn_every_n", sa.Integer(), nullable=False, server_default="7"),
        sa.Column("watermark", sa.Date(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # --- goal_settings (singleton, id = 1) ---
    op.create_table(
        "goal_settings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("daily_goal", sa.Integer(), nullable=False, server_default="10000"),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("goal_settings")
    op.drop_table("bonus_ledger")
    op.drop_index("ix_day_records_day", table_name="day_records")
    op.drop_table("day_records")
    op.drop_index("ix_daily_activity_day", table_name="daily_activity")
    op.drop_table("daily_activity")
