"""agency mandates, reference tables and audit trail

Revision ID: 0001_mandates
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0001_mandates"
down_revision = None
branch_labels = None
depends_on = None

_PERMISSIONS = (
    ("can_view_properties", True),
    ("can_edit_properties", False),
    ("can_create_properties", False),
    ("can_delete_properties", False),
    ("can_view_applications", True),
    ("can_manage_applications", False),
    ("can_create_leases", False),
    ("can_view_financials", False),
    ("can_manage_maintenance", False),
    ("can_communicate_tenants", True),
    ("can_manage_documents", False),
)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "properties",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("client_id", sa.String(length=100), nullable=False),
        sa.Column("owner_id", sa.String(length=36), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("city", sa.String(length=100), nullable=True),
        sa.Column("monthly_rent", sa.Numeric(12, 2), nullable=False, server_default="0"),
    )
    op.create_index("ix_properties_client_id", "properties", ["client_id"])
    op.create_index("ix_properties_owner_id", "properties", ["owner_id"])

    op.create_table(
        "profiles",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("client_id", sa.String(length=100), nullable=False),
        sa.Column("display_name", sa.String(length=255), nullable=False),
    )
    op.create_index("ix_profiles_client_id", "profiles", ["client_id"])

    op.create_table(
        "agencies",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("client_id", sa.String(length=100), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=True),
        sa.Column("agency_name", sa.String(length=255), nullable=False),
        sa.Column("city", sa.String(length=100), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
        sa.Column("commission_rate", sa.Numeric(5, 2), nullable=False, server_default="10"),
    )
    op.create_index("ix_agencies_client_id", "agencies", ["client_id"])
    op.create_index("ix_agencies_user_id", "agencies", ["user_id"])
    op.create_index("ix_agencies_agency_name", "agencies", ["agency_name"])

    op.create_table(
        "agency_mandates",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("client_id", sa.String(length=100), nullable=False),
        sa.Column("owner_id", sa.String(length=36), nullable=False),
        sa.Column("agency_id", sa.String(length=36), nullable=False),
        sa.Column("property_id", sa.String(length=36), nullable=True),
        sa.Column("mandate_scope", sa.String(length=20), nullable=False, server_default="single_property"),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("commission_rate", sa.Numeric(5, 2), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=True),
        *[
            sa.Column(name, sa.Boolean(), nullable=False, server_default=sa.true() if default else sa.false())
            for name, default in _PERMISSIONS
        ],
        sa.Column("owner_signed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("agency_signed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("signed_mandate_url", sa.String(length=1000), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "(property_id IS NULL AND mandate_scope = 'all_properties') OR "
            "(property_id IS NOT NULL AND mandate_scope = 'single_property')",
            name="ck_agency_mandates_scope_matches_property",
        ),
        sa.CheckConstraint(
            "commission_rate >= 0 AND commission_rate <= 100",
            name="ck_agency_mandates_commission_rate_range",
        ),
        sa.CheckConstraint(
            "status IN ('pending', 'active', 'suspended', 'expired', 'cancelled')",
            name="ck_agency_mandates_status",
        ),
    )
    for column in ("client_id", "owner_id", "agency_id", "property_id", "status", "end_date"):
        op.create_index(f"ix_agency_mandates_{column}", "agency_mandates", [column])

    op.create_table(
        "audit_trail",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("client_id", sa.String(length=100), nullable=False),
        sa.Column("actor_id", sa.String(length=36), nullable=True),
        sa.Column("actor_role", sa.String(length=20), nullable=False),
        sa.Column("action", sa.String(length=100), nullable=False),
        sa.Column("entity_type", sa.String(length=100), nullable=False),
        sa.Column("entity_id", sa.String(length=36), nullable=True),
        sa.Column("old_value", sa.JSON(), nullable=True),
        sa.Column("new_value", sa.JSON(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    for column in ("client_id", "actor_id", "action", "entity_type", "entity_id", "created_at"):
        op.create_index(f"ix_audit_trail_{column}", "audit_trail", [column])


def downgrade() -> None:
    op.drop_table("audit_trail")
    op.drop_table("agency_mandates")
    op.drop_table("agencies")
    op.drop_table("profiles")
    op.drop_table("properties")
