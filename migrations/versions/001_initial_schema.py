"""Initial schema: users, provider roster, service requests and feedback.

Revision ID: 001
Create Date: 2026-10-17
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "001"
down_revision = None
branch_labels = None
depends_on = None

SERVICE_TYPES = ("flat-tire", "locksmith", "emergency", "towing")
REQUEST_STATUSES = (
    "Requested",
    "Accepted",
    "En Route",
    "Arrived",
    "Completed",
    "Paid",
    "Cancelled",
)


def upgrade() -> None:
    service_type = sa.Enum(*SERVICE_TYPES, name="servicetype")

    # ── users ─────────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("license_plate", sa.String(20), nullable=True),
        sa.Column(
            "role",
            sa.Enum("customer", "driver", name="userrole"),
            nullable=False,
            server_default="customer",
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )

    # ── providers ─────────────────────────────────────────────────────
    op.create_table(
        "providers",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("service_type", service_type, nullable=False),
        sa.Column(
            "status",
            sa.Enum("available", "busy", "offline", name="providerstatus"),
            nullable=False,
            server_default="available",
        ),
        sa.Column("plate", sa.String(20), nullable=True),
        sa.Column("latitude", sa.Float, nullable=True),
        sa.Column("longitude", sa.Float, nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index(
        "idx_providers_service_status", "providers", ["service_type", "status"]
    )

    # ── service_requests ──────────────────────────────────────────────
    op.create_table(
        "service_requests",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "user_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False
        ),
        sa.Column(
            "service_type",
            postgresql.ENUM(*SERVICE_TYPES, name="servicetype", create_type=False),
            nullable=False,
        ),
        sa.Column("location", sa.String(255), nullable=False),
        sa.Column("latitude", sa.Float, nullable=True),
        sa.Column("longitude", sa.Float, nullable=True),
        sa.Column(
            "status",
            sa.Enum(*REQUEST_STATUSES, name="requeststatus"),
            nullable=False,
            server_default="Requested",
        ),
        sa.Column(
            "provider_id", sa.Integer, sa.ForeignKey("providers.id"), nullable=True
        ),
        sa.Column("provider_name", sa.String(120), nullable=True),
        sa.Column("price", sa.Float, nullable=False),
        sa.Column("quoted_eta_minutes", sa.Integer, nullable=False),
        sa.Column("service_notes", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status_changed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("accepted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("estimated_arrival_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("arrived_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completion_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_by", sa.String(20), nullable=True),
        sa.Column("transaction_id", sa.String(40), unique=True, nullable=True),
        sa.Column("payment_details", sa.JSON, nullable=True),
    )
    op.create_index("idx_requests_status", "service_requests", ["status"])
    op.create_index("idx_requests_user", "service_requests", ["user_id"])
    op.create_index("idx_requests_provider", "service_requests", ["provider_id"])
    op.create_index(
        "uq_requests_user_live",
        "service_requests",
        ["user_id"],
        unique=True,
        postgresql_where=sa.text("status NOT IN ('Paid', 'Cancelled')"),
    )

    # ── feedback ──────────────────────────────────────────────────────
    op.create_table(
        "feedback",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "request_id",
            sa.Integer,
            sa.ForeignKey("service_requests.id"),
            nullable=False,
        ),
        sa.Column(
            "feedback_type",
            sa.Enum("customer_to_driver", "driver_to_customer", name="feedbacktype"),
            nullable=False,
        ),
        sa.Column("rating", sa.Integer, nullable=False),
        sa.Column("comments", sa.String(500), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index("idx_feedback_request", "feedback", ["request_id"])


def downgrade() -> None:
    op.drop_table("feedback")
    op.drop_table("service_requests")
    op.drop_table("providers")
    op.drop_table("users")
    op.execute("DROP TYPE IF EXISTS feedbacktype")
    op.execute("DROP TYPE IF EXISTS requeststatus")
    op.execute("DROP TYPE IF EXISTS providerstatus")
    op.execute("DROP TYPE IF EXISTS servicetype")
    op.execute("DROP TYPE IF EXISTS userrole")
