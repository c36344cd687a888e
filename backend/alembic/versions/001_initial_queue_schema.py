"""Initial queue schema: registry, queues, games, metrics, notifications and webhooks.

Revision ID: 001_initial_queue_schema
Revises:
"""

from alembic import op
import sqlalchemy as sa


revision = "001_initial_queue_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # -----------------------------------------------------------------------
    # 1. Registry (provisioned outside the engine)
    # -----------------------------------------------------------------------
    op.create_table(
        "facility",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("timezone", sa.String(), nullable=False, server_default="America/New_York"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "queue",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("facility_id", sa.Integer(), sa.ForeignKey("facility.id"), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("skill_level", sa.String(), nullable=False, server_default="intermediate"),
        sa.Column("version", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_queue_facility_id", "queue", ["facility_id"])

    op.create_table(
        "court",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("facility_id", sa.Integer(), sa.ForeignKey("facility.id"), nullable=False),
        sa.Column("queue_id", sa.Integer(), sa.ForeignKey("queue.id"), nullable=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("skill_level", sa.String(), nullable=False, server_default="intermediate"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("current_game_id", sa.Integer(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_court_facility_id", "court", ["facility_id"])
    op.create_index("ix_court_queue_id", "court", ["queue_id"])

    # -----------------------------------------------------------------------
    # 2. Queue entries: one row per waiting player, positions 1..n
    # -----------------------------------------------------------------------
    op.create_table(
        "queue_entry",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("queue_id", sa.Integer(), sa.ForeignKey("queue.id"), nullable=False),
        sa.Column("player_id", sa.String(), nullable=False),
        sa.Column("display_name", sa.String(), nullable=False),
        sa.Column("joined_at", sa.DateTime(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("notified_tier", sa.String(), nullable=True),
        sa.UniqueConstraint("queue_id", "player_id", name="uq_queue_entry_player"),
    )
    op.create_index("ix_queue_entry_queue_id", "queue_entry", ["queue_id"])

    # -----------------------------------------------------------------------
    # 3. Games and duration samples
    # -----------------------------------------------------------------------
    op.create_table(
        "game",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("court_id", sa.Integer(), sa.ForeignKey("court.id"), nullable=False),
        sa.Column("queue_id", sa.Integer(), sa.ForeignKey("queue.id"), nullable=False),
        sa.Column("facility_id", sa.Integer(), sa.ForeignKey("facility.id"), nullable=False),
        sa.Column("team_a", sa.JSON(), nullable=False),
        sa.Column("team_b", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="in_progress"),
        sa.Column("started_at", sa.DateTime(), nullable=False),
        sa.Column("ended_at", sa.DateTime(), nullable=True),
        sa.Column("duration_seconds", sa.Integer(), nullable=True),
        sa.Column("score_a", sa.Integer(), nullable=True),
        sa.Column("score_b", sa.Integer(), nullable=True),
        sa.Column("winner", sa.String(), nullable=True),
    )
    op.create_index("ix_game_court_id", "game", ["court_id"])
    op.create_index("ix_game_queue_id", "game", ["queue_id"])
    op.create_index("ix_game_facility_id", "game", ["facility_id"])
    op.create_index("ix_game_status", "game", ["status"])

    op.create_table(
        "game_metric",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("game_id", sa.Integer(), sa.ForeignKey("game.id"), nullable=False, unique=True),
        sa.Column("facility_id", sa.Integer(), sa.ForeignKey("facility.id"), nullable=False),
        sa.Column("court_id", sa.Integer(), sa.ForeignKey("court.id"), nullable=False),
        sa.Column("queue_id", sa.Integer(), sa.ForeignKey("queue.id"), nullable=False),
        sa.Column("skill_level", sa.String(), nullable=False),
        sa.Column("duration_seconds", sa.Integer(), nullable=False),
        sa.Column("hour_of_day", sa.Integer(), nullable=False),
        sa.Column("day_of_week", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_game_metric_facility_id", "game_metric", ["facility_id"])
    op.create_index("ix_game_metric_court_id", "game_metric", ["court_id"])
    op.create_index("ix_game_metric_created_at", "game_metric", ["created_at"])

    # -----------------------------------------------------------------------
    # 4. Player contact + notification log
    # -----------------------------------------------------------------------
    op.create_table(
        "player_contact",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("player_id", sa.String(), nullable=False),
        sa.Column("display_name", sa.String(), nullable=False),
        sa.Column("phone", sa.String(), nullable=True),
        sa.Column("sms_opt_in", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("push_opt_in", sa.Boolean(), nullable=False, server_default=sa.true()),
    )
    op.create_index("ix_player_contact_player_id", "player_contact", ["player_id"], unique=True)

    op.create_table(
        "notification_log",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("player_id", sa.String(), nullable=False),
        sa.Column("queue_id", sa.Integer(), nullable=True),
        sa.Column("notification_type", sa.String(), nullable=False),
        sa.Column("channel", sa.String(), nullable=False),
        sa.Column("recipient", sa.String(), nullable=True),
        sa.Column("message_body", sa.String(), nullable=False),
        sa.Column("provider_sid", sa.String(), nullable=True),
        sa.Column("status", sa.String(), nullable=False, server_default="queued"),
        sa.Column("error_message", sa.String(), nullable=True),
        sa.Column("sent_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_notification_log_player_id", "notification_log", ["player_id"])
    op.create_index("ix_notification_log_queue_id", "notification_log", ["queue_id"])

    # -----------------------------------------------------------------------
    # 5. Webhooks
    # -----------------------------------------------------------------------
    op.create_table(
        "webhook",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("facility_id", sa.Integer(), sa.ForeignKey("facility.id"), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("url", sa.String(), nullable=False),
        sa.Column("events", sa.JSON(), nullable=False),
        sa.Column("secret", sa.String(), nullable=False),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_webhook_facility_id", "webhook", ["facility_id"])

    op.create_table(
        "webhook_delivery",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("webhook_id", sa.Integer(), sa.ForeignKey("webhook.id"), nullable=False),
        sa.Column("event", sa.String(), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("status_code", sa.Integer(), nullable=True),
        sa.Column("success", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("error_message", sa.String(), nullable=True),
        sa.Column("sent_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_webhook_delivery_webhook_id", "webhook_delivery", ["webhook_id"])


def downgrade():
    op.drop_table("webhook_delivery")
    op.drop_table("webhook")
    op.drop_table("notification_log")
    op.drop_table("player_contact")
    op.drop_table("game_metric")
    op.drop_table("game")
    op.drop_table("queue_entry")
    op.drop_table("court")
    op.drop_table("queue")
    op.drop_table("facility")
