"""Initial schema: premium accounts, payments, trials, trial server pool, VPN servers, admins.

Idempotent: tables that already exist (created by an earlier
Base.metadata.create_all) are left alone, so this revision can be stamped onto
databases that predate Alembic.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-17

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _existing_tables() -> set:
    return set(sa.inspect(op.get_bind()).get_table_names())


def upgrade() -> None:
    existing = _existing_tables()

    if "premium_accounts" not in existing:
        op.create_table(
            "premium_accounts",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("email", sa.String(), nullable=False),
            sa.Column("is_premium", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("bound_device_id", sa.String(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
        )
        op.create_index("ix_premium_accounts_id", "premium_accounts", ["id"])
        op.create_index("ix_premium_accounts_email", "premium_accounts", ["email"], unique=True)
        op.create_index("ix_premium_accounts_bound_device_id", "premium_accounts", ["bound_device_id"])

    if "payments" not in existing:
        op.create_table(
            "payments",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("provider", sa.String(), nullable=False, server_default="paystack"),
            sa.Column("reference", sa.String(), nullable=False),
            sa.Column("email", sa.String(), nullable=False),
            sa.Column("device_id", sa.String(), nullable=True),
            sa.Column("amount", sa.Numeric(14, 2), nullable=False),
            sa.Column("currency", sa.String(), nullable=False),
            sa.Column("status", sa.String(), nullable=False, server_default="granted"),
            sa.Column("paid_at", sa.DateTime(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=True),
        )
        op.create_index("ix_payments_id", "payments", ["id"])
        op.create_index("ix_payments_reference", "payments", ["reference"], unique=True)
        op.create_index("ix_payments_email", "payments", ["email"])

    if "trials" not in existing:
        op.create_table(
            "trials",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("device_id", sa.String(), nullable=False),
            sa.Column("email", sa.String(), nullable=False),
            sa.Column("started_at", sa.DateTime(), nullable=False),
        )
        op.create_index("ix_trials_id", "trials", ["id"])
        op.create_index("ix_trials_device_id", "trials", ["device_id"], unique=True)

    if "trial_servers" not in existing:
        op.create_table(
            "trial_servers",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("ip", sa.String(), nullable=False),
            sa.Column("username", sa.String(), nullable=False),
            sa.Column("password", sa.String(), nullable=False),
            sa.Column("location", sa.String(), nullable=True),
            sa.Column("tags", sa.JSON(), nullable=False),
            sa.Column("capacity", sa.Integer(), nullable=False, server_default="10"),
            sa.Column("current_users", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.CheckConstraint("current_users >= 0", name="ck_trial_servers_users_non_negative"),
            sa.CheckConstraint("current_users <= capacity", name="ck_trial_servers_within_capacity"),
        )
        op.create_index("ix_trial_servers_id", "trial_servers", ["id"])

    if "trial_allocations" not in existing:
        op.create_table(
            "trial_allocations",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("device_id", sa.String(), nullable=False),
            sa.Column(
                "server_id",
                sa.Integer(),
                sa.ForeignKey("trial_servers.id", ondelete="CASCADE"),
                nullable=False,
            ),
            sa.Column("allocated_at", sa.DateTime(), nullable=False),
            sa.Column("released_at", sa.DateTime(), nullable=True),
        )
        op.create_index("ix_trial_allocations_id", "trial_allocations", ["id"])
        op.create_index("ix_trial_allocations_device_id", "trial_allocations", ["device_id"], unique=True)

    if "vpn_servers" not in existing:
        op.create_table(
            "vpn_servers",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=False),
            sa.Column("country", sa.String(), nullable=False),
            sa.Column("location", sa.String(), nullable=False),
            sa.Column("ip", sa.String(), nullable=True),
            sa.Column("port", sa.Integer(), nullable=True),
            sa.Column("username", sa.String(), nullable=True),
            sa.Column("password", sa.String(), nullable=True),
        )

    if "admin_users" not in existing:
        op.create_table(
            "admin_users",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("username", sa.String(), nullable=False),
            sa.Column("hashed_password", sa.String(), nullable=False),
            sa.Column("subscribed", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        )
        op.create_index("ix_admin_users_id", "admin_users", ["id"])
        op.create_index("ix_admin_users_username", "admin_users", ["username"], unique=True)


def downgrade() -> None:
    for table in (
        "admin_users",
        "vpn_servers",
        "trial_allocations",
        "trial_servers",
        "trials",
        "payments",
        "premium_accounts",
    ):
        op.drop_table(table)
