"""create core tables

Revision ID: a1c0r3t4b5l6
Revises:
Create Date: 2026-09-01 00:00:00.000000
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "a1c0r3t4b5l6"
down_revision = None
branch_labels = None
depends_on = None


def _account_role_enum() -> sa.Enum:
    return sa.Enum("ADMIN", "LISENSADMIN", "OPPDRAGSANSVARLIG", "MEDARBEIDER", name="account_role_enum", native_enum=False)


def _frequency_enum() -> sa.Enum:
    return sa.Enum(
        "DAILY",
        "WEEKLY",
        "MONTHLY",
        "BI_MONTHLY",
        "QUARTERLY",
        "YEARLY",
        "ONCE",
        name="task_frequency_enum",
        native_enum=False,
    )


def _timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "tenants",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("org_number", sa.String(length=32), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("subscription_plan", sa.String(length=32), nullable=False, server_default="basic"),
        sa.Column("subscription_status", sa.String(length=32), nullable=False, server_default="active"),
        sa.Column("employee_limit", sa.Integer(), nullable=True, server_default="5"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index("ix_tenants_org_number", "tenants", ["org_number"], unique=False)
    op.create_index("ix_tenants_is_active", "tenants", ["is_active"], unique=False)

    op.create_table(
        "users",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("tenant_id", sa.String(length=36), sa.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("first_name", sa.String(length=128), nullable=False),
        sa.Column("last_name", sa.String(length=128), nullable=False),
        sa.Column("role", _account_role_enum(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("is_licensed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("tenant_id", "email", name="uq_users_tenant_email"),
    )
    op.create_index("ix_users_tenant_id", "users", ["tenant_id"], unique=False)
    op.create_index("ix_users_email", "users", ["email"], unique=False)
    op.create_index("ix_users_tenant_licensed", "users", ["tenant_id", "is_active", "is_licensed"], unique=False)

    op.create_table(
        "clients",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("tenant_id", sa.String(length=36), sa.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("org_number", sa.String(length=32), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index("ix_clients_tenant_id", "clients", ["tenant_id"], unique=False)
    op.create_index("ix_clients_tenant_active", "clients", ["tenant_id", "is_active"], unique=False)

    op.create_table(
        "client_tasks",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("tenant_id", sa.String(length=36), sa.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False),
        sa.Column("client_id", sa.String(length=36), sa.ForeignKey("clients.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("frequency", _frequency_enum(), nullable=True),
        sa.Column("next_due_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("assignee_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_client_tasks_tenant_due", "client_tasks", ["tenant_id", "next_due_at"], unique=False)
    op.create_index("ix_client_tasks_tenant_client", "client_tasks", ["tenant_id", "client_id"], unique=False)
    op.create_index("ix_client_tasks_frequency", "client_tasks", ["frequency"], unique=False)

    op.create_table(
        "tasks",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("tenant_id", sa.String(length=36), sa.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False),
        sa.Column("template_id", sa.String(length=36), sa.ForeignKey("client_tasks.id", ondelete="SET NULL"), nullable=True),
        sa.Column("client_id", sa.String(length=36), sa.ForeignKey("clients.id", ondelete="CASCADE"), nullable=True),
        sa.Column("assignee_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "priority",
            sa.Enum("LOW", "MEDIUM", "HIGH", name="task_priority_enum", native_enum=False),
            nullable=False,
        ),
        sa.Column(
            "status",
            sa.Enum("PENDING", "IN_PROGRESS", "COMPLETED", name="task_status_enum", native_enum=False),
            nullable=False,
        ),
        sa.Column("due_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_tasks_tenant_status", "tasks", ["tenant_id", "status"], unique=False)
    op.create_index("ix_tasks_tenant_client_title_due", "tasks", ["tenant_id", "client_id", "title", "due_at"], unique=False)
    op.create_index("ix_tasks_assignee_status", "tasks", ["assignee_id", "status"], unique=False)
    op.create_index("ix_tasks_template_id", "tasks", ["template_id"], unique=False)

    op.create_table(
        "time_entries",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("tenant_id", sa.String(length=36), sa.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("client_id", sa.String(length=36), sa.ForeignKey("clients.id", ondelete="CASCADE"), nullable=True),
        sa.Column("task_id", sa.String(length=36), sa.ForeignKey("tasks.id", ondelete="SET NULL"), nullable=True),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("hours", sa.Numeric(5, 2), nullable=False),
        sa.Column("entry_date", sa.Date(), nullable=False),
        sa.Column("billable", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_time_entries_tenant_user_date", "time_entries", ["tenant_id", "user_id", "entry_date"], unique=False)

    op.create_table(
        "licensed_employees",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("tenant_id", sa.String(length=36), sa.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("period", sa.String(length=7), nullable=False),
        sa.Column("is_licensed", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("tenant_id", "user_id", "period", name="uq_licensed_employees_tenant_user_period"),
    )
    op.create_index("ix_licensed_employees_tenant_period", "licensed_employees", ["tenant_id", "period"], unique=False)

    op.create_table(
        "invoices",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("tenant_id", sa.String(length=36), sa.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False),
        sa.Column("invoice_number", sa.String(length=64), nullable=False),
        sa.Column("period", sa.String(length=7), nullable=False),
        sa.Column("period_start", sa.DateTime(timezone=True), nullable=False),
        sa.Column("period_end", sa.DateTime(timezone=True), nullable=False),
        sa.Column("total_amount", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("currency", sa.String(length=8), nullable=False, server_default="NOK"),
        sa.Column(
            "status",
            sa.Enum("DRAFT", "ISSUED", name="invoice_status_enum", native_enum=False),
            nullable=False,
        ),
        sa.Column("issued_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("tenant_id", "period_start", "period_end", name="uq_invoices_tenant_period"),
    )
    op.create_index("ix_invoices_tenant_status", "invoices", ["tenant_id", "status"], unique=False)
    op.create_index("ix_invoices_invoice_number", "invoices", ["invoice_number"], unique=False)

    op.create_table(
        "invoice_lines",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("invoice_id", sa.String(length=36), sa.ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "line_type",
            sa.Enum("MAIN_LICENSE", "USER_LICENSE", name="invoice_line_type_enum", native_enum=False),
            nullable=False,
        ),
        sa.Column("natural_key", sa.String(length=128), nullable=False),
        sa.Column("description", sa.String(length=255), nullable=False),
        sa.Column("quantity", sa.Numeric(12, 2), nullable=False, server_default="1"),
        sa.Column("unit_price", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("invoice_id", "natural_key", name="uq_invoice_lines_invoice_key"),
    )
    op.create_index("ix_invoice_lines_invoice_type", "invoice_lines", ["invoice_id", "line_type"], unique=False)

    op.create_table(
        "audit_events",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("tenant_id", sa.String(length=36), sa.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False),
        sa.Column("actor_user_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("module", sa.String(length=32), nullable=False),
        sa.Column("action", sa.String(length=64), nullable=False),
        sa.Column("entity_type", sa.String(length=64), nullable=False),
        sa.Column("entity_id", sa.String(length=64), nullable=False),
        sa.Column("is_critical", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("before", sa.JSON(), nullable=True),
        sa.Column("after", sa.JSON(), nullable=True),
        sa.Column("details", sa.JSON(), nullable=True),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_audit_events_tenant_id", "audit_events", ["tenant_id"], unique=False)
    op.create_index(
        "ix_audit_events_tenant_module_action",
        "audit_events",
        ["tenant_id", "module", "action"],
        unique=False,
    )
    op.create_index("ix_audit_events_tenant_entity", "audit_events", ["tenant_id", "entity_type", "entity_id"], unique=False)
    op.create_index(
        "ix_audit_events_tenant_recent",
        "audit_events",
        ["tenant_id", sa.text("occurred_at DESC")],
        unique=False,
    )

    op.create_table(
        "notification_logs",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("tenant_id", sa.String(length=36), sa.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False),
        sa.Column("task_id", sa.String(length=36), sa.ForeignKey("tasks.id", ondelete="SET NULL"), nullable=True),
        sa.Column("channel", sa.String(length=16), nullable=False, server_default="email"),
        sa.Column("template_key", sa.String(length=64), nullable=False),
        sa.Column("recipient", sa.String(length=255), nullable=False),
        sa.Column("subject", sa.String(length=255), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=True),
        sa.Column(
            "status",
            sa.Enum("QUEUED", "SENT", "FAILED", "SKIPPED", name="delivery_status_enum", native_enum=False),
            nullable=False,
        ),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("delivered_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_notification_logs_tenant_id", "notification_logs", ["tenant_id"], unique=False)
    op.create_index("ix_notification_logs_tenant_status", "notification_logs", ["tenant_id", "status"], unique=False)
    op.create_index("ix_notification_logs_task", "notification_logs", ["task_id"], unique=False)


def downgrade() -> None:
    for table in (
        "notification_logs",
        "audit_events",
        "invoice_lines",
        "invoices",
        "licensed_employees",
        "time_entries",
        "tasks",
        "client_tasks",
        "clients",
        "users",
        "tenants",
    ):
        op.drop_table(table)
