"""Initial Cutroom schema.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-18

"""
from alembic import op
import sqlalchemy as sa

revision = "001_initial"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    ]


def _org_fk() -> sa.Column:
    return sa.Column("org_id", sa.Uuid, sa.ForeignKey("org.id", ondelete="CASCADE"), nullable=False)


def upgrade() -> None:
    # Org (tenant root, owns the storage counter)
    op.create_table(
        "org",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("slug", sa.String(100), nullable=False, unique=True),
        sa.Column("storage_used_bytes", sa.BigInteger, nullable=False, server_default="0"),
        *_timestamps(),
    )
    op.create_index("ix_org_slug", "org", ["slug"])

    # Video
    op.create_table(
        "video",
        sa.Column("id", sa.Uuid, primary_key=True),
        _org_fk(),
        sa.Column("title", sa.String(300)),
        sa.Column("description", sa.Text),
        sa.Column("status", sa.String(20), nullable=False, server_default="UPLOADED"),
        sa.Column("failure_reason", sa.Text),
        sa.Column("original_name", sa.String(500)),
        sa.Column("original_mime", sa.String(200)),
        sa.Column("original_size", sa.BigInteger),
        sa.Column("original_key", sa.Text),
        sa.Column("mux_asset_id", sa.String(200)),
        sa.Column("mux_playback_id", sa.String(200)),
        sa.Column("playback_url", sa.Text),
        sa.Column("thumbnail_url", sa.Text),
        sa.Column("archived_at", sa.DateTime(timezone=True)),
        sa.Column("deleted_at", sa.DateTime(timezone=True)),
        *_timestamps(),
    )
    op.create_index("ix_video_org_id", "video", ["org_id"])
    op.create_index("ix_video_status", "video", ["status"])
    op.create_index("ix_video_mux_asset_id", "video", ["mux_asset_id"])
    op.create_index("ix_video_org_deleted", "video", ["org_id", "deleted_at"])

    # Gallery
    op.create_table(
        "gallery",
        sa.Column("id", sa.Uuid, primary_key=True),
        _org_fk(),
        sa.Column("title", sa.String(300), nullable=False),
        sa.Column("stacks_json", sa.Text, nullable=False, server_default="{}"),
        sa.Column("deleted_at", sa.DateTime(timezone=True)),
        *_timestamps(),
    )
    op.create_index("ix_gallery_org_id", "gallery", ["org_id"])

    # Grouping link
    op.create_table(
        "gallery_video",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("gallery_id", sa.Uuid, sa.ForeignKey("gallery.id", ondelete="CASCADE"), nullable=False),
        sa.Column("video_id", sa.Uuid, sa.ForeignKey("video.id", ondelete="CASCADE"), nullable=False),
        sa.Column("sort_order", sa.Integer, server_default="0"),
        *_timestamps(),
        sa.UniqueConstraint("gallery_id", "video_id", name="uq_gallery_video"),
    )
    op.create_index("ix_gallery_video_gallery_id", "gallery_video", ["gallery_id"])
    op.create_index("ix_gallery_video_video_id", "gallery_video", ["video_id"])

    # Comments
    op.create_table(
        "comment",
        sa.Column("id", sa.Uuid, primary_key=True),
        _org_fk(),
        sa.Column("video_id", sa.Uuid, sa.ForeignKey("video.id", ondelete="CASCADE"), nullable=False),
        sa.Column("author_name", sa.String(200)),
        sa.Column("body", sa.Text, nullable=False),
        sa.Column("timecode_seconds", sa.Float),
        sa.Column("resolved", sa.Boolean, server_default=sa.false()),
        *_timestamps(),
    )
    op.create_index("ix_comment_org_id", "comment", ["org_id"])
    op.create_index("ix_comment_video_id", "comment", ["video_id"])

    # Share links
    op.create_table(
        "share_link",
        sa.Column("id", sa.Uuid, primary_key=True),
        _org_fk(),
        sa.Column("token", sa.String(100), nullable=False, unique=True),
        sa.Column("video_id", sa.Uuid, sa.ForeignKey("video.id", ondelete="CASCADE")),
        sa.Column("gallery_id", sa.Uuid, sa.ForeignKey("gallery.id", ondelete="CASCADE")),
        sa.Column("expires_at", sa.DateTime(timezone=True)),
        *_timestamps(),
    )
    op.create_index("ix_share_link_org_id", "share_link", ["org_id"])
    op.create_index("ix_share_link_token", "share_link", ["token"])
    op.create_index("ix_share_link_video_id", "share_link", ["video_id"])
    op.create_index("ix_share_link_gallery_id", "share_link", ["gallery_id"])


def downgrade() -> None:
    op.drop_table("share_link")
    op.drop_table("comment")
    op.drop_table("gallery_video")
    op.drop_table("gallery")
    op.drop_table("video")
    op.drop_table("org")
