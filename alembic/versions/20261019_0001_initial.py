"""
Initial schema: accounts, sessions, galleries and plan-change audit.

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "Accounts",
        sa.Column("UserID", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("Username", sa.String(length=64), nullable=False, unique=True),
        sa.Column("Email", sa.String(length=255), nullable=False, unique=True),
        sa.Column("PlanKey", sa.String(length=32), nullable=False, server_default="free"),
        sa.Column("CreatedAt", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("IsActive", sa.Boolean(), nullable=False, server_default=sa.text("1")),
    )

    op.create_table(
        "AccountSession",
        sa.Column("SessionID", sa.String(length=36), primary_key=True),
        sa.Column("UserID", sa.Integer(), sa.ForeignKey("Accounts.UserID"), nullable=False),
        sa.Column("CreatedAt", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("ExpiresAt", sa.DateTime(), nullable=True),
        sa.Column("IsActive", sa.Boolean(), nullable=False, server_default=sa.text("1")),
    )

    op.create_table(
        "Gallery",
        sa.Column("GalleryID", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("UserID", sa.Integer(), sa.ForeignKey("Accounts.UserID"), nullable=False),
        sa.Column("Title", sa.String(length=255), nullable=False),
        sa.Column("Slug", sa.String(length=255), nullable=False, unique=True),
        sa.Column("EventDate", sa.DateTime(), nullable=False),
        sa.Column("Location", sa.String(length=255), nullable=True),
        sa.Column("ClientName", sa.String(length=255), nullable=True),
        sa.Column("Category", sa.String(length=64), nullable=True),
        sa.Column("IsPublic", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("ShowOnProfile", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("IsArchived", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("IsDeleted", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("DeletedAt", sa.DateTime(), nullable=True),
        sa.Column("CreatedAt", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("UpdatedAt", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index(
        "IX_Gallery_Owner_State", "Gallery", ["UserID", "IsDeleted", "IsArchived"], unique=False
    )

    op.create_table(
        "PlanChangeAudit",
        sa.Column("AuditID", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("UserID", sa.Integer(), sa.ForeignKey("Accounts.UserID"), nullable=False),
        sa.Column("OldPlan", sa.String(length=32), nullable=True),
        sa.Column("NewPlan", sa.String(length=32), nullable=True),
        sa.Column("NewLimit", sa.Integer(), nullable=True),
        sa.Column("ArchivedCount", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("ArchivedIDs", sa.Text(), nullable=True),
        sa.Column("CreatedAt", sa.DateTime(), server_default=sa.func.now()),
    )


def downgrade() -> None:
    op.drop_table("PlanChangeAudit")
    op.drop_index("IX_Gallery_Owner_State", table_name="Gallery")
    op.drop_table("Gallery")
    op.drop_table("AccountSession")
    op.drop_table("Accounts")
