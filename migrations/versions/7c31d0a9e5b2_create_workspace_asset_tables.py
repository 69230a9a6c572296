"""create workspace, post day and asset tables

Revision ID: 7c31d0a9e5b2
Revises:
Create Date: 2026-10-19 09:30:00
"""

from alembic import op
import sqlalchemy as sa


revision = "7c31d0a9e5b2"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "users",
        sa.Column("id", sa.String(length=128), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=True, unique=True),
        sa.Column("name", sa.String(length=120), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_table(
        "workspaces",
        sa.Column("id", sa.String(length=128), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("owner_uid", sa.String(length=128), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_table(
        "workspace_members",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("workspace_id", sa.String(length=128), sa.ForeignKey("workspaces.id"), nullable=False),
        sa.Column("user_id", sa.String(length=128), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("role", sa.String(length=50), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("workspace_id", "user_id", name="uq_workspace_members_workspace_user"),
    )
    op.create_table(
        "post_days",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("workspace_id", sa.String(length=128), sa.ForeignKey("workspaces.id"), nullable=False),
        sa.Column("date_id", sa.String(length=128), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("starter_text", sa.Text(), nullable=True),
        sa.Column("image_asset_id", sa.String(length=16), nullable=True),
        sa.Column("image_url", sa.Text(), nullable=True),
        sa.Column("original_image_url", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("workspace_id", "date_id", name="uq_post_days_workspace_date"),
    )
    op.create_table(
        "assets",
        sa.Column("workspace_id", sa.String(length=128), sa.ForeignKey("workspaces.id"), primary_key=True),
        sa.Column("id", sa.String(length=16), primary_key=True),
        sa.Column("date_id", sa.String(length=128), nullable=False),
        sa.Column("storage_path", sa.String(length=512), nullable=False, unique=True),
        sa.Column("download_url", sa.Text(), nullable=False),
        sa.Column("download_token", sa.String(length=64), nullable=False),
        sa.Column("original_url", sa.Text(), nullable=False),
        sa.Column("content_type", sa.String(length=50), nullable=False),
        sa.Column("size", sa.Integer(), nullable=False),
        sa.Column("file_name", sa.String(length=64), nullable=False),
        sa.Column("width", sa.Integer(), nullable=True),
        sa.Column("height", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("created_by", sa.String(length=128), nullable=False),
    )
    op.create_index("ix_assets_workspace_date", "assets", ["workspace_id", "date_id"])
    op.create_table(
        "stored_objects",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("bucket", sa.String(length=255), nullable=False),
        sa.Column("path", sa.String(length=512), nullable=False),
        sa.Column("content_type", sa.String(length=50), nullable=False),
        sa.Column("cache_control", sa.String(length=120), nullable=True),
        sa.Column("custom_metadata", sa.JSON(), nullable=True),
        sa.Column("size", sa.Integer(), nullable=False),
        sa.Column("data", sa.LargeBinary(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("bucket", "path", name="uq_stored_objects_bucket_path"),
    )


def downgrade():
    op.drop_table("stored_objects")
    op.drop_index("ix_assets_workspace_date", table_name="assets")
    op.drop_table("assets")
    op.drop_table("post_days")
    op.drop_table("workspace_members")
    op.drop_table("workspaces")
    op.drop_table("users")
