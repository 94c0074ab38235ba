"""create shop_settings and activity_logs

Revision ID: 3a7c91d2e4b5
Revises:
Create Date: 2026-02-12 18:52:44.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3a7c91d2e4b5'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade():
    op.create_table(
        "shop_settings",
        sa.Column("shop", sa.String(), primary_key=True),
        sa.Column("automation_enabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("auto_reactivate_enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("run_interval_value", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("run_interval_unit", sa.String(), nullable=False, server_default="days"),
        sa.Column("inactivity_threshold_days", sa.Integer(), nullable=False, server_default="90"),
        sa.Column("last_run_at", sa.DateTime(), nullable=True),
        sa.Column("last_run_kind", sa.String(), nullable=True),
        sa.Column("last_run_result_set", sa.JSON(), nullable=True),
        sa.Column("current_run_state", sa.String(), nullable=False, server_default="IDLE"),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_shop_settings_shop", "shop_settings", ["shop"])
    op.create_index("ix_shop_settings_automation_enabled", "shop_settings", ["automation_enabled"])

    op.create_table(
        "activity_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("shop", sa.String(), nullable=False),
        sa.Column("product_id", sa.String(), nullable=False),
        sa.Column("product_title", sa.String(), nullable=False),
        sa.Column("product_sku", sa.String(), nullable=True),
        sa.Column("action", sa.String(), nullable=False),
        sa.Column("method", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_activity_logs_id", "activity_logs", ["id"])
    op.create_index("ix_activity_logs_shop", "activity_logs", ["shop"])
    op.create_index("ix_activity_logs_action", "activity_logs", ["action"])
    op.create_index("ix_activity_logs_created_at", "activity_logs", ["created_at"])


def downgrade():
    op.drop_table("activity_logs")
    op.drop_table("shop_settings")
