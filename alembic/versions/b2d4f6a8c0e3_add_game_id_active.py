"""add_game_id_active

Revision ID: b2d4f6a8c0e3
Revises: a1c3e5f7b9d2
Create Date: 2026-02-04 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "b2d4f6a8c0e3"
down_revision: Union[str, Sequence[str], None] = "a1c3e5f7b9d2"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.add_column("devices", sa.Column("game_id", sa.Text(), nullable=True))
    op.add_column("devices", sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.false()))
    op.create_index("devices_user_id_active_index", "devices", ["user_id", "active"])


def downgrade() -> None:
    op.drop_index("devices_user_id_active_index", table_name="devices")
    op.drop_column("devices", "active")
    op.drop_column("devices", "game_id")
