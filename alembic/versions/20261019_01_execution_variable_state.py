"""Execution variable state baseline

Revision ID: 20261019_01
Revises:
Create Date: 2026-10-19
"""
# pylint: disable=no-member,invalid-name,wrong-import-order

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20261019_01"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""

    op.create_table(
        "execution_variable",
        sa.Column("instance_id", sa.Text(), nullable=False),
        sa.Column("variable_name", sa.Text(), nullable=False),
        sa.Column("variable_value", sa.Text(), nullable=False),
        sa.Column(
            "updated_at_utc",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.current_timestamp(),
        ),
        sa.PrimaryKeyConstraint("instance_id", "variable_name", name="pk_execution_variable"),
    )
    op.create_index("ix_execution_variable_updated_at_utc", "execution_variable", ["updated_at_utc"])


def downgrade() -> None:
    """Downgrade schema."""

    op.drop_index("ix_execution_variable_updated_at_utc", table_name="execution_variable")
    op.drop_table("execution_variable")
