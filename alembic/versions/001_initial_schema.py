"""001 – Initial schema: all tables, indexes, enums, seed data.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-18 10:00:00.000000+07:00
"""

from alembic import op

# Revision identifiers
revision = "001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

ENUM_TYPES: list[tuple[str, list[str]]] = [
    ("user_role", ["employee", "manager", "director", "hr_admin", "system_admin"]),
    ("leave_status", ["pending", "approved", "rejected", "cancelled"]),
    (
        "leave_category",
        [
            "annual",
            "sick",
            "personal",
            "unpaid",
            "wedding_self",
            "wedding_child",
            "bereavement_close",
            "bereavement_distant",
            "other",
        ],
    ),
    ("notification_type", ["info", "action_required", "approval", "alert"]),
]

NEW_REQUEST_BODY = """
<h2>New leave request</h2>
<p>Hello,</p>
<p><strong>{{requester_name}}</strong> has submitted a leave request:</p>
<ul>
  <li>Type: {{leave_type}}</li>
  <li>Dates: {{from_date}} – {{to_date}}</li>
  <li>Duration: {{duration}} day(s) ({{deduction}})</li>
  <li>Reason: {{reason}}</li>
</ul>
<p><a href="{{action_url}}">Review the request</a></p>
"""

REQUEST_DECISION_BODY = """
<h2>Leave request update</h2>
<p>Hello {{requester_name}},</p>
<p>Your {{leave_type}} request for {{from_date}} – {{to_date}} is now
<strong>{{status}}</strong>.</p>
<p>Reviewed by: {{approver_name}}</p>
<p>{{remarks}}</p>
<p><a href="{{action_url}}">View the request</a></p>
"""


def _create_enum(name: str, values: list[str]) -> None:
    vals = ", ".join(f"'{v}'" for v in values)
    op.execute(f"CREATE TYPE {name} AS ENUM ({vals})")


def _drop_enum(name: str) -> None:
    op.execute(f"DROP TYPE IF EXISTS {name}")


def _sql_literal(text: str) -> str:
    return "'" + text.replace("'", "''") + "'"


# ---------------------------------------------------------------------------
# UPGRADE
# ---------------------------------------------------------------------------


def upgrade() -> None:
    # ── Extensions ────────────────────────────────────────────────────────
    op.execute('CREATE EXTENSION IF NOT EXISTS "uuid-ossp"')

    # ── Enum types ────────────────────────────────────────────────────────
    for name, values in ENUM_TYPES:
        _create_enum(name, values)

    # ── 1. employees ──────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE employees (
            id             UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_code  VARCHAR(20) UNIQUE,
            name           VARCHAR(200) NOT NULL,
            email          VARCHAR(255) NOT NULL UNIQUE,
            role           user_role NOT NULL DEFAULT 'employee',
            department     VARCHAR(150),
            job_title      VARCHAR(150),
            work_location  VARCHAR(150),
            phone          VARCHAR(20),
            avatar_url     VARCHAR(500),
            manager_id     UUID CONSTRAINT fk_employee_manager REFERENCES employees(id),
            start_date     VARCHAR(32),  -- as supplied by the directory import
            is_active      BOOLEAN DEFAULT TRUE,
            created_at     TIMESTAMPTZ DEFAULT NOW(),
            updated_at     TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_employees_manager_id ON employees (manager_id)")
    op.execute("CREATE INDEX ix_employees_lower_name ON employees (lower(name))")

    # ── 2. leave_requests ─────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_requests (
            id               UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id      UUID NOT NULL REFERENCES employees(id),
            leave_type       leave_category NOT NULL,
            from_date        DATE NOT NULL,
            to_date          DATE NOT NULL,
            request_details  JSONB NOT NULL DEFAULT '[]',
            duration         NUMERIC(5,1) NOT NULL,
            days_annual      NUMERIC(5,1) NOT NULL DEFAULT 0,
            days_unpaid      NUMERIC(5,1) NOT NULL DEFAULT 0,
            days_exempt      NUMERIC(5,1) NOT NULL DEFAULT 0,
            exemption_note   VARCHAR(200),
            reason           TEXT,
            status           leave_status NOT NULL DEFAULT 'pending',
            reviewed_by      UUID REFERENCES employees(id),
            reviewer_name    VARCHAR(200),
            reviewed_at      TIMESTAMPTZ,
            reviewer_remarks TEXT,
            cancelled_at     TIMESTAMPTZ,
            created_at       TIMESTAMPTZ DEFAULT NOW(),
            updated_at       TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT ck_leave_request_dates CHECK (from_date <= to_date),
            CONSTRAINT ck_leave_request_buckets_sum
                CHECK (days_annual + days_unpaid + days_exempt = duration)
        )
    """)
    op.execute(
        "CREATE INDEX ix_leave_requests_employee_from "
        "ON leave_requests (employee_id, from_date)"
    )
    op.execute(
        "CREATE INDEX ix_leave_requests_pending "
        "ON leave_requests (created_at) WHERE status = 'pending'"
    )

    # ── 3. custom_holidays ────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE custom_holidays (
            id          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            date        DATE NOT NULL UNIQUE,
            name        VARCHAR(200) NOT NULL,
            created_by  UUID REFERENCES employees(id),
            created_at  TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # ── 4. email_templates ────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE email_templates (
            id          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            slug        VARCHAR(100) NOT NULL UNIQUE,
            name        VARCHAR(200) NOT NULL,
            description TEXT,
            subject     VARCHAR(300) NOT NULL,
            body_html   TEXT NOT NULL,
            variables   JSONB NOT NULL DEFAULT '[]',
            updated_by  UUID REFERENCES employees(id),
            updated_at  TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # ── 5. notifications ──────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE notifications (
            id           UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            recipient_id UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            type         notification_type DEFAULT 'info',
            actor_name   VARCHAR(200),
            title        VARCHAR(200) NOT NULL,
            message      TEXT NOT NULL,
            action_url   VARCHAR(500),
            entity_type  VARCHAR(50),
            entity_id    UUID,
            is_read      BOOLEAN DEFAULT FALSE,
            read_at      TIMESTAMPTZ,
            created_at   TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute(
        "CREATE INDEX ix_notifications_recipient_read "
        "ON notifications (recipient_id, is_read)"
    )

    # ── 6. audit_trail ────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE audit_trail (
            id          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            actor_id    UUID REFERENCES employees(id),
            action      VARCHAR(50) NOT NULL,
            entity_type VARCHAR(50) NOT NULL,
            entity_id   UUID NOT NULL,
            old_values  JSONB,
            new_values  JSONB,
            created_at  TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_audit_trail_entity ON audit_trail (entity_type, entity_id)")
    op.execute("CREATE INDEX ix_audit_trail_actor_id ON audit_trail (actor_id)")

    # ── 7. app_settings ───────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE app_settings (
            key         VARCHAR(100) PRIMARY KEY,
            value       JSONB NOT NULL,
            description TEXT,
            updated_at  TIMESTAMPTZ DEFAULT NOW(),
            updated_by  UUID REFERENCES employees(id)
        )
    """)

    # ── Seed data ─────────────────────────────────────────────────────────

    op.execute("""
        INSERT INTO app_settings (key, value, description) VALUES
        ('work_schedule', '{"schedule": "mon_fri"}', 'Organisation working week')
    """)

    op.execute(f"""
        INSERT INTO email_templates (slug, name, description, subject, body_html, variables)
        VALUES
        (
            'new_request',
            'New leave request',
            'Sent to the manager when an employee submits a request',
            '[Leave] New request from {{{{requester_name}}}}',
            {_sql_literal(NEW_REQUEST_BODY)},
            '["requester_name", "leave_type", "from_date", "to_date", "duration",
              "deduction", "reason", "action_url"]'
        ),
        (
            'request_decision',
            'Leave request decision',
            'Sent to the requester when a request is approved, rejected or cancelled',
            '[Leave] Your request was {{{{status}}}}',
            {_sql_literal(REQUEST_DECISION_BODY)},
            '["requester_name", "leave_type", "from_date", "to_date", "status",
              "approver_name", "remarks", "action_url"]'
        )
    """)


# ---------------------------------------------------------------------------
# DOWNGRADE
# ---------------------------------------------------------------------------


def downgrade() -> None:
    # Drop tables in reverse dependency order
    tables = [
        "app_settings",
        "audit_trail",
        "notifications",
        "email_templates",
        "custom_holidays",
        "leave_requests",
        "employees",
    ]
    for table in tables:
        op.execute(f"DROP TABLE IF EXISTS {table} CASCADE")

    for name, _ in reversed(ENUM_TYPES):
        _drop_enum(name)
