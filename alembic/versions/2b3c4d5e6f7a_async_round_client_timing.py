"""async_round_client_timing

Revision ID: 2b3c4d5e6f7a
Revises: 1a2b3c4d5e6f
Create Date: 2026-10-19 15:30:00.000000
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "2b3c4d5e6f7a"
down_revision: str | None = "1a2b3c4d5e6f"
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    op.add_column(
        "async_match_rounds",
        sa.Column("initiator_client_response_ms", sa.Integer(), nullable=True),
    )
    op.add_column(
        "async_match_rounds",
        sa.Column("opponent_client_response_ms", sa.Integer(), nullable=True),
    )


def downgrade() -> None:
    op.drop_column("async_match_rounds", "opponent_client_response_ms")
    op.drop_column("async_match_rounds", "initiator_client_response_ms")
