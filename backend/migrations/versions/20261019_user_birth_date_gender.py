"""Add birth_date and gender to users

Revision ID: 20261019_user_profile
Revises: b0a1c2d3e4f5
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_user_profile"
down_revision = "b0a1c2d3e4f5"
branch_labels = None
depends_on = None


def upgrade():
    with op.batch_alter_table("users", schema=None) as batch_op:
        batch_op.add_column(sa.Column("birth_date", sa.DateTime(timezone=True), nullable=True))
        batch_op.add_column(sa.Column("gender", sa.String(length=20), nullable=True))


def downgrade():
    with op.batch_alter_table("users", schema=None) as batch_op:
        batch_op.drop_column("gender")
        batch_op.drop_column("birth_date")
