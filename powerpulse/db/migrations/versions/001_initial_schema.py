"""
Initial schema: create the append-only telemetry_readings table.

One row per finished sample. A (source, ts) index serves the dashboard's
"most recent N readings for a source" query.

Revision ID: 001
Revises: None
Create Date: 2026-10-04
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# Revision identifiers used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

_PHASE_COLUMNS = (
    "voltage_r",
    "voltage_y",
    "voltage_b",
    "current_r",
    "current_y",
    "current_b",
    "active_power_r",
    "active_power_y",
    "active_power_b",
)


def upgrade() -> None:
    """Create telemetry_readings and its (source, ts) index."""
    op.create_table(
        "telemetry_readings",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("source", sa.Text(), nullable=False),
        sa.Column("ts", sa.DateTime(timezone=True), nullable=False),
        *(sa.Column(name, sa.Double(), nullable=True) for name in _PHASE_COLUMNS),
        sa.Column("power_factor", sa.Double(), nullable=True),
        sa.Column("thd", sa.Double(), nullable=True),
        sa.Column("avg_voltage", sa.Double(), nullable=True),
        sa.Column("avg_current", sa.Double(), nullable=True),
        sa.Column("avg_active_power", sa.Double(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_telemetry_readings_source_ts",
        "telemetry_readings",
        ["source", "ts"],
    )


def downgrade() -> None:
    """Drop telemetry_readings and its index."""
    op.drop_index("ix_telemetry_readings_source_ts", table_name="telemetry_readings")
    op.drop_table("telemetry_readings")
