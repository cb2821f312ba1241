"""init_schema

Revision ID: 4c1e9a7d2b10
Revises: 
Create Date: 2026-10-19 10:02:11.418233

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql



revision = '4c1e9a7d2b10'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "user",
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("password_hash", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("user_id"),
    )
    op.create_index("ix_user_email", "user", ["email"], unique=True)

    op.create_table(
        "session_record",
        sa.Column("token_digest", sa.String(length=64), nullable=False),
        sa.Column("subject", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("issued_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("replaced_by_digest", sa.String(length=64), nullable=True),
        sa.Column("origin_ip", sa.String(length=45), nullable=True),
        sa.Column("origin_agent", sa.String(length=255), nullable=True),
        sa.ForeignKeyConstraint(["subject"], ["user.user_id"]),
        sa.PrimaryKeyConstraint("token_digest"),
    )
    op.create_index("ix_session_record_subject", "session_record", ["subject"])
    op.create_index("ix_session_record_expires_at", "session_record", ["expires_at"])
    op.create_index(
        "ix_session_record_subject_revoked",
        "session_record",
        ["subject", "revoked_at"],
    )


def downgrade() -> None:
    op.drop_index("ix_session_record_subject_revoked", table_name="session_record")
    op.drop_index("ix_session_record_expires_at", table_name="session_record")
    op.drop_index("ix_session_record_subject", table_name="session_record")
    op.drop_table("session_record")

    op.drop_index("ix_user_email", table_name="user")
    op.drop_table("user")
