"""change_user_game_id_to_bigint

Revision ID: c3e5a7b9d1f4
Revises: b2d4f6a8c0e3
Create Date: 2026-02-04 09:30:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "c3e5a7b9d1f4"
down_revision: Union[str, Sequence[str], None] = "b2d4f6a8c0e3"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.alter_column(
        "devices", "user_id", type_=sa.BigInteger(), existing_type=sa.Text(), postgresql_using="user_id::bigint"
    )
    op.alter_column(
        "devices", "game_id", type_=sa.BigInteger(), existing_type=sa.Text(), postgresql_using="game_id::bigint"
    )


def downgrade() -> None:
    op.alter_column(
        "devices", "user_id", type_=sa.Text(), existing_type=sa.BigInteger(), postgresql_using="user_id::text"
    )
    op.alter_column(
        "devices", "game_id", type_=sa.Text(), existing_type=sa.BigInteger(), postgresql_using="game_id::text"
    )
