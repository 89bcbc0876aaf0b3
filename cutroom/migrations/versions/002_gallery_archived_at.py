"""Gallery archive timestamp.

Revision ID: 002_gallery_archived_at
Revises: 001_initial
Create Date: 2026-10-18

Galleries can be archived independently of their videos; unarchiving a
gallery also brings its videos back to the active view.
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "002_gallery_archived_at"
down_revision = "001_initial"
branch_labels = None
depends_on = None


def upgrade() -> None:
    with op.batch_alter_table("gallery") as batch_op:
        batch_op.add_column(sa.Column("archived_at", sa.DateTime(timezone=True), nullable=True))


def downgrade() -> None:
    with op.batch_alter_table("gallery") as batch_op:
        batch_op.drop_column("archived_at")
