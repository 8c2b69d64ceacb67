"""001_initial_tables

Revision ID: 001
Revises:
Create Date: 2026-01-12 00:00:00.000000

Creates all initial tables for ZenaManage:
  - tenants
  - users
  - projects
  - tasks
  - task_dependencies
  - comments
  - change_requests
  - notifications
  - notification_rules
  - dashboard_widgets
  - user_dashboards
  - dashboard_alerts
  - activity_logs
"""
from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | None = None
depends_on: str | None = None

ENUMS: dict[str, tuple[str, ...]] = {
    "user_role_enum": (
        "client", "member", "designer", "site_engineer",
        "project_manager", "admin", "super_admin",
    ),
    "project_status_enum": (
        "planning", "active", "on_hold", "completed", "cancelled", "archived",
    ),
    "project_priority_enum": ("low", "normal", "high", "urgent"),
    "task_status_enum": ("backlog", "in_progress", "blocked", "done", "canceled"),
    "task_priority_enum": ("low", "normal", "high", "urgent"),
    "change_type_enum": ("scope", "cost", "schedule", "quality", "design", "other"),
    "change_priority_enum": ("low", "medium", "high", "urgent"),
    "change_request_status_enum": (
        "draft", "awaiting_approval", "approved", "rejected", "applied",
    ),
    "notification_priority_enum": ("low", "normal", "high", "critical"),
    "notification_rule_priority_enum": ("low", "normal", "high", "critical"),
    "dashboard_alert_severity_enum": ("info", "warning", "critical"),
}


def _enum(name: str) -> postgresql.ENUM:
    return postgresql.ENUM(*ENUMS[name], name=name, create_type=False)


def _uuid() -> postgresql.UUID:
    return postgresql.UUID(as_uuid=True)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    ]


def _tenant_fk(table: str) -> sa.ForeignKeyConstraint:
    return sa.ForeignKeyConstraint(
        ["tenant_id"], ["tenants.id"],
        name=f"fk_{table}_tenant_id_tenants",
        ondelete="CASCADE",
    )


def upgrade() -> None:
    # ── Enums ─────────────────────────────────────────────────────────────────
    bind = op.get_bind()
    for name in ENUMS:
        _enum(name).create(bind, checkfirst=True)

    # ── tenants ───────────────────────────────────────────────────────────────
    op.create_table(
        "tenants",
        sa.Column("id", _uuid(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("slug", sa.String(120), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_tenants"),
        sa.UniqueConstraint("slug", name="uq_tenants_slug"),
    )
    op.create_index("ix_tenants_is_active", "tenants", ["is_active"])

    # ── users ─────────────────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", _uuid(), nullable=False),
        sa.Column("tenant_id", _uuid(), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("hashed_password", sa.String(255), nullable=False),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column("role", _enum("user_role_enum"), nullable=False, server_default="member"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("job_title", sa.String(255), nullable=True),
        sa.Column("refresh_token_hash", sa.String(64), nullable=True),
        *_timestamps(),
        _tenant_fk("users"),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )
    op.create_index("ix_users_tenant_id", "users", ["tenant_id"])
    op.create_index("ix_users_email", "users", ["email"])
    op.create_index("ix_users_email_active", "users", ["email", "is_active"])
    op.create_index("ix_users_tenant_role", "users", ["tenant_id", "role"])

    # ── projects ──────────────────────────────────────────────────────────────
    op.create_table(
        "projects",
        sa.Column("id", _uuid(), nullable=False),
        sa.Column("tenant_id", _uuid(), nullable=False),
        sa.Column("code", sa.String(50), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "status", _enum("project_status_enum"), nullable=False, server_default="planning"
        ),
        sa.Column(
            "priority", _enum("project_priority_enum"), nullable=False, server_default="normal"
        ),
        sa.Column("budget_total", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("progress_percent", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("owner_id", _uuid(), nullable=True),
        sa.Column("created_by", _uuid(), nullable=True),
        *_timestamps(),
        _tenant_fk("projects"),
        sa.ForeignKeyConstraint(
            ["owner_id"], ["users.id"],
            name="fk_projects_owner_id_users",
            ondelete="SET NULL",
        ),
        sa.ForeignKeyConstraint(
            ["created_by"], ["users.id"],
            name="fk_projects_created_by_users",
            ondelete="SET NULL",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_projects"),
        sa.UniqueConstraint("tenant_id", "code", name="uq_projects_tenant_code"),
    )
    op.create_index("ix_projects_tenant_id", "projects", ["tenant_id"])
    op.create_index("ix_projects_owner_id", "projects", ["owner_id"])
    op.create_index("ix_projects_tenant_status", "projects", ["tenant_id", "status"])

    # ── tasks ─────────────────────────────────────────────────────────────────
    op.create_table(
        "tasks",
        sa.Column("id", _uuid(), nullable=False),
        sa.Column("tenant_id", _uuid(), nullable=False),
        sa.Column("project_id", _uuid(), nullable=False),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", _enum("task_status_enum"), nullable=False, server_default="backlog"),
        sa.Column("status_reason", sa.String(1000), nullable=True),
        sa.Column(
            "priority", _enum("task_priority_enum"), nullable=False, server_default="normal"
        ),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("progress_percent", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("assignee_id", _uuid(), nullable=True),
        sa.Column("created_by", _uuid(), nullable=False),
        sa.Column("tags", sa.JSON(), nullable=True),
        sa.Column("is_archived", sa.Boolean(), nullable=False, server_default="false"),
        *_timestamps(),
        _tenant_fk("tasks"),
        sa.ForeignKeyConstraint(
            ["project_id"], ["projects.id"],
            name="fk_tasks_project_id_projects",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["assignee_id"], ["users.id"],
            name="fk_tasks_assignee_id_users",
            ondelete="SET NULL",
        ),
        sa.ForeignKeyConstraint(
            ["created_by"], ["users.id"],
            name="fk_tasks_created_by_users",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_tasks"),
    )
    op.create_index("ix_tasks_tenant_id", "tasks", ["tenant_id"])
    op.create_index("ix_tasks_project_id", "tasks", ["project_id"])
    op.create_index("ix_tasks_assignee_id", "tasks", ["assignee_id"])
    op.create_index("ix_tasks_tenant_status", "tasks", ["tenant_id", "status"])
    op.create_index("ix_tasks_priority", "tasks", ["priority"])
    op.create_index("ix_tasks_due_date", "tasks", ["due_date"])
    op.create_index("ix_tasks_is_archived", "tasks", ["is_archived"])
    op.create_index("ix_tasks_project_sort_order", "tasks", ["project_id", "sort_order"])

    # ── task_dependencies ─────────────────────────────────────────────────────
    op.create_table(
        "task_dependencies",
        sa.Column("task_id", _uuid(), nullable=False),
        sa.Column("depends_on_id", _uuid(), nullable=False),
        sa.Column("tenant_id", _uuid(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        _tenant_fk("task_dependencies"),
        sa.ForeignKeyConstraint(
            ["task_id"], ["tasks.id"],
            name="fk_task_dependencies_task_id_tasks",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["depends_on_id"], ["tasks.id"],
            name="fk_task_dependencies_depends_on_id_tasks",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("task_id", "depends_on_id", name="pk_task_dependencies"),
        sa.UniqueConstraint("task_id", "depends_on_id", name="uq_task_dependencies_edge"),
    )
    op.create_index(
        "ix_task_dependencies_depends_on_id", "task_dependencies", ["depends_on_id"]
    )

    # ── comments ──────────────────────────────────────────────────────────────
    op.create_table(
        "comments",
        sa.Column("id", _uuid(), nullable=False),
        sa.Column("tenant_id", _uuid(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("task_id", _uuid(), nullable=False),
        sa.Column("author_id", _uuid(), nullable=False),
        sa.Column("edited_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        _tenant_fk("comments"),
        sa.ForeignKeyConstraint(
            ["task_id"], ["tasks.id"],
            name="fk_comments_task_id_tasks",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["author_id"], ["users.id"],
            name="fk_comments_author_id_users",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_comments"),
    )
    op.create_index("ix_comments_tenant_id", "comments", ["tenant_id"])
    op.create_index("ix_comments_task_created", "comments", ["task_id", "created_at"])
    op.create_index("ix_comments_author_id", "comments", ["author_id"])

    # ── change_requests ───────────────────────────────────────────────────────
    op.create_table(
        "change_requests",
        sa.Column("id", _uuid(), nullable=False),
        sa.Column("tenant_id", _uuid(), nullable=False),
        sa.Column("project_id", _uuid(), nullable=False),
        sa.Column("change_number", sa.String(80), nullable=False),
        sa.Column("sequence", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("change_type", _enum("change_type_enum"), nullable=False),
        sa.Column(
            "priority", _enum("change_priority_enum"), nullable=False, server_default="medium"
        ),
        sa.Column("impact_analysis", sa.Text(), nullable=True),
        sa.Column("justification", sa.Text(), nullable=True),
        sa.Column("alternatives_considered", sa.Text(), nullable=True),
        sa.Column("cost_impact", sa.Numeric(14, 2), nullable=True),
        sa.Column("schedule_impact_days", sa.Integer(), nullable=True),
        sa.Column(
            "status",
            _enum("change_request_status_enum"),
            nullable=False,
            server_default="draft",
        ),
        sa.Column("requested_by", _uuid(), nullable=False),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("decided_by", _uuid(), nullable=True),
        sa.Column("decided_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("decision_comment", sa.Text(), nullable=True),
        sa.Column("approved_cost", sa.Numeric(14, 2), nullable=True),
        sa.Column("approved_schedule_days", sa.Integer(), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("applied_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        _tenant_fk("change_requests"),
        sa.ForeignKeyConstraint(
            ["project_id"], ["projects.id"],
            name="fk_change_requests_project_id_projects",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["requested_by"], ["users.id"],
            name="fk_change_requests_requested_by_users",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["decided_by"], ["users.id"],
            name="fk_change_requests_decided_by_users",
            ondelete="SET NULL",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_change_requests"),
        sa.UniqueConstraint(
            "project_id", "sequence", name="uq_change_requests_project_sequence"
        ),
    )
    op.create_index("ix_change_requests_tenant_id", "change_requests", ["tenant_id"])
    op.create_index("ix_change_requests_project_id", "change_requests", ["project_id"])
    op.create_index("ix_change_requests_requested_by", "change_requests", ["requested_by"])
    op.create_index(
        "ix_change_requests_tenant_status", "change_requests", ["tenant_id", "status"]
    )

    # ── notifications ─────────────────────────────────────────────────────────
    op.create_table(
        "notifications",
        sa.Column("id", _uuid(), nullable=False),
        sa.Column("tenant_id", _uuid(), nullable=False),
        sa.Column("user_id", _uuid(), nullable=False),
        sa.Column("module", sa.String(50), nullable=False),
        sa.Column("type", sa.String(100), nullable=False),
        sa.Column(
            "priority",
            _enum("notification_priority_enum"),
            nullable=False,
            server_default="normal",
        ),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("message", sa.String(2000), nullable=False),
        sa.Column("entity_type", sa.String(50), nullable=True),
        sa.Column("entity_id", _uuid(), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        *_timestamps(),
        _tenant_fk("notifications"),
        sa.ForeignKeyConstraint(
            ["user_id"], ["users.id"],
            name="fk_notifications_user_id_users",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_notifications"),
    )
    op.create_index("ix_notifications_tenant_id", "notifications", ["tenant_id"])
    op.create_index("ix_notifications_user_is_read", "notifications", ["user_id", "is_read"])
    op.create_index(
        "ix_notifications_user_created", "notifications", ["user_id", "created_at"]
    )
    op.create_index("ix_notifications_module", "notifications", ["module"])

    # ── notification_rules ────────────────────────────────────────────────────
    op.create_table(
        "notification_rules",
        sa.Column("id", _uuid(), nullable=False),
        sa.Column("tenant_id", _uuid(), nullable=False),
        sa.Column("user_id", _uuid(), nullable=False),
        sa.Column("event_key", sa.String(100), nullable=False),
        sa.Column("project_id", _uuid(), nullable=True),
        sa.Column(
            "min_priority",
            _enum("notification_rule_priority_enum"),
            nullable=False,
            server_default="low",
        ),
        sa.Column("channels", sa.JSON(), nullable=False),
        sa.Column("is_enabled", sa.Boolean(), nullable=False, server_default="true"),
        *_timestamps(),
        _tenant_fk("notification_rules"),
        sa.ForeignKeyConstraint(
            ["user_id"], ["users.id"],
            name="fk_notification_rules_user_id_users",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["project_id"], ["projects.id"],
            name="fk_notification_rules_project_id_projects",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_notification_rules"),
    )
    op.create_index("ix_notification_rules_tenant_id", "notification_rules", ["tenant_id"])
    op.create_index(
        "ix_notification_rules_user_event", "notification_rules", ["user_id", "event_key"]
    )

    # ── dashboard_widgets ─────────────────────────────────────────────────────
    op.create_table(
        "dashboard_widgets",
        sa.Column("id", _uuid(), nullable=False),
        sa.Column("code", sa.String(100), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("type", sa.String(50), nullable=False),
        sa.Column("category", sa.String(50), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("permissions", sa.JSON(), nullable=True),
        sa.Column("default_size", sa.JSON(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_dashboard_widgets"),
        sa.UniqueConstraint("code", name="uq_dashboard_widgets_code"),
    )

    # ── user_dashboards ───────────────────────────────────────────────────────
    op.create_table(
        "user_dashboards",
        sa.Column("id", _uuid(), nullable=False),
        sa.Column("tenant_id", _uuid(), nullable=False),
        sa.Column("user_id", _uuid(), nullable=False),
        sa.Column("layout", sa.JSON(), nullable=False),
        sa.Column("widgets", sa.JSON(), nullable=False),
        sa.Column("preferences", sa.JSON(), nullable=True),
        *_timestamps(),
        _tenant_fk("user_dashboards"),
        sa.ForeignKeyConstraint(
            ["user_id"], ["users.id"],
            name="fk_user_dashboards_user_id_users",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_user_dashboards"),
        sa.UniqueConstraint("user_id", name="uq_user_dashboards_user_id"),
    )
    op.create_index("ix_user_dashboards_tenant_id", "user_dashboards", ["tenant_id"])

    # ── dashboard_alerts ──────────────────────────────────────────────────────
    op.create_table(
        "dashboard_alerts",
        sa.Column("id", _uuid(), nullable=False),
        sa.Column("tenant_id", _uuid(), nullable=False),
        sa.Column("user_id", _uuid(), nullable=False),
        sa.Column("project_id", _uuid(), nullable=True),
        sa.Column("type", sa.String(100), nullable=False),
        sa.Column("category", sa.String(50), nullable=False),
        sa.Column(
            "severity",
            _enum("dashboard_alert_severity_enum"),
            nullable=False,
            server_default="info",
        ),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("message", sa.String(2000), nullable=False),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        _tenant_fk("dashboard_alerts"),
        sa.ForeignKeyConstraint(
            ["user_id"], ["users.id"],
            name="fk_dashboard_alerts_user_id_users",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["project_id"], ["projects.id"],
            name="fk_dashboard_alerts_project_id_projects",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_dashboard_alerts"),
    )
    op.create_index("ix_dashboard_alerts_tenant_id", "dashboard_alerts", ["tenant_id"])
    op.create_index(
        "ix_dashboard_alerts_user_is_read", "dashboard_alerts", ["user_id", "is_read"]
    )
    op.create_index("ix_dashboard_alerts_project_id", "dashboard_alerts", ["project_id"])

    # ── activity_logs ─────────────────────────────────────────────────────────
    op.create_table(
        "activity_logs",
        sa.Column("id", _uuid(), nullable=False),
        sa.Column("tenant_id", _uuid(), nullable=False),
        sa.Column("user_id", _uuid(), nullable=False),
        sa.Column("action", sa.String(200), nullable=False),
        sa.Column("entity_type", sa.String(100), nullable=False),
        sa.Column("entity_id", _uuid(), nullable=False),
        sa.Column("meta", sa.JSON(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        _tenant_fk("activity_logs"),
        sa.ForeignKeyConstraint(
            ["user_id"], ["users.id"],
            name="fk_activity_logs_user_id_users",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_activity_logs"),
    )
    op.create_index("ix_activity_logs_tenant_id", "activity_logs", ["tenant_id"])
    op.create_index(
        "ix_activity_logs_tenant_created", "activity_logs", ["tenant_id", "created_at"]
    )
    op.create_index(
        "ix_activity_logs_tenant_entity",
        "activity_logs",
        ["tenant_id", "entity_type", "entity_id"],
    )
    op.create_index(
        "ix_activity_logs_tenant_user", "activity_logs", ["tenant_id", "user_id", "created_at"]
    )
    op.create_index("ix_activity_logs_action", "activity_logs", ["action"])


def downgrade() -> None:
    # Reverse dependency order
    for table in (
        "activity_logs",
        "dashboard_alerts",
        "user_dashboards",
        "dashboard_widgets",
        "notification_rules",
        "notifications",
        "change_requests",
        "comments",
        "task_dependencies",
        "tasks",
        "projects",
        "users",
        "tenants",
    ):
        op.drop_table(table)

    for enum_name in reversed(list(ENUMS)):
        op.execute(f"DROP TYPE IF EXISTS {enum_name}")
