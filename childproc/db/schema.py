"""SQLAlchemy Core table definitions owned by the db layer."""

import sqlalchemy as sa

EXECUTION_STATE_METADATA = sa.MetaData()

EXECUTION_VARIABLE_TABLE = sa.Table(
    "execution_variable",
    EXECUTION_STATE_METADATA,
    sa.Column("instance_id", sa.Text(), primary_key=True),
    sa.Column("variable_name", sa.Text(), primary_key=True),
    sa.Column("variable_value", sa.Text(), nullable=False),
    sa.Column("updated_at_utc", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.current_timestamp()),
)
