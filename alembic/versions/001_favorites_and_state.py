"""Create favorite_city and system_state tables.

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "favorite_city",
        sa.Column("name", sa.String(128), primary_key=True),
        sa.Column("region", sa.String(128), nullable=False, server_default=""),
        sa.Column("country", sa.String(128), nullable=False, server_default=""),
        sa.Column("latitude", sa.Float, nullable=False, server_default="0"),
        sa.Column("longitude", sa.Float, nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("idx_favorite_city_created", "favorite_city", [sa.text("created_at DESC")])

    op.create_table(
        "system_state",
        sa.Column("key", sa.String(64), primary_key=True),
        sa.Column("value", sa.Text, nullable=False),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            onupdate=sa.func.now(),
        ),
    )


def downgrade() -> None:
    op.drop_table("system_state")
    op.drop_index("idx_favorite_city_created", table_name="favorite_city")
    op.drop_table("favorite_city")
