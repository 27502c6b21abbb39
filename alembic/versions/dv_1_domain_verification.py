"""Add domain_verifications and domain_verification_attempts tables

Revision ID: dv_1_domain_verification

The companies table is owned by the company service and must exist first.
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

revision = "dv_1_domain_verification"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "domain_verifications",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, index=True),
        sa.Column("company_id", UUID(as_uuid=True), sa.ForeignKey("companies.id"), nullable=False, index=True),
        sa.Column("domain", sa.String(255), nullable=False),
        sa.Column("method", sa.String(32), nullable=False, server_default="file"),
        sa.Column("token", sa.String(64), nullable=False),
        sa.Column("proof_resource_name", sa.String(255), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="pending", index=True),
        sa.Column("attempt_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("reset_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_checked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("failure_reason", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(
        "ix_domain_verifications_company_domain",
        "domain_verifications",
        ["company_id", "domain"],
    )

    op.create_table(
        "domain_verification_attempts",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, index=True),
        sa.Column(
            "verification_id",
            UUID(as_uuid=True),
            sa.ForeignKey("domain_verifications.id"),
            nullable=False,
            index=True,
        ),
        sa.Column("attempt_number", sa.Integer(), nullable=False),
        sa.Column("trigger", sa.String(16), nullable=False),
        sa.Column("result", sa.String(16), nullable=False),
        sa.Column("channel", sa.String(32), nullable=True),
        sa.Column("detail", sa.Text(), nullable=True),
        sa.Column("checked_at", sa.DateTime(timezone=True), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("domain_verification_attempts")
    op.drop_index("ix_domain_verifications_company_domain", table_name="domain_verifications")
    op.drop_table("domain_verifications")
