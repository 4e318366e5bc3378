"""add referral attribution tables

Revision ID: a7b8c9d0e1f2
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "a7b8c9d0e1f2"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


directory_kind_enum = postgresql.ENUM(
    "AFFILIATE",
    "PEER",
    name="directorykind",
    create_type=False,
)
directory_status_enum = postgresql.ENUM(
    "ACTIVE",
    "INACTIVE",
    name="directorystatus",
    create_type=False,
)
attribution_source_enum = postgresql.ENUM(
    "EXPLICIT",
    "SESSION",
    "FALLBACK_FINGERPRINT",
    name="attributionsource",
    create_type=False,
)


def upgrade() -> None:
    op.execute(
        """
        DO $$
        BEGIN
            IF NOT EXISTS (SELECT 1 FROM pg_type WHERE typname = 'directorykind') THEN
                CREATE TYPE directorykind AS ENUM ('AFFILIATE', 'PEER');
            END IF;
            IF NOT EXISTS (SELECT 1 FROM pg_type WHERE typname = 'directorystatus') THEN
                CREATE TYPE directorystatus AS ENUM ('ACTIVE', 'INACTIVE');
            END IF;
            IF NOT EXISTS (SELECT 1 FROM pg_type WHERE typname = 'attributionsource') THEN
                CREATE TYPE attributionsource AS ENUM (
                    'EXPLICIT', 'SESSION', 'FALLBACK_FINGERPRINT'
                );
            END IF;
        END $$;
        """
    )

    op.create_table(
        "directoryentry",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("code", sa.String(length=16), nullable=False),
        sa.Column("owner_user_id", sa.String(length=255), nullable=False),
        sa.Column("kind", directory_kind_enum, nullable=False),
        sa.Column("status", directory_status_enum, nullable=False),
        sa.Column("is_blocked", sa.Boolean(), nullable=False),
        sa.Column("total_referrals", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_directoryentry_code"), "directoryentry", ["code"], unique=True
    )
    op.create_index(
        op.f("ix_directoryentry_owner_user_id"),
        "directoryentry",
        ["owner_user_id"],
        unique=False,
    )

    op.create_table(
        "referralsession",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("session_id", sa.String(length=64), nullable=False),
        sa.Column("referral_code", sa.String(length=16), nullable=True),
        sa.Column("landing_path", sa.String(length=2048), nullable=True),
        sa.Column("referrer_url", sa.String(length=2048), nullable=True),
        sa.Column("utm_source", sa.String(length=255), nullable=True),
        sa.Column("utm_medium", sa.String(length=255), nullable=True),
        sa.Column("utm_campaign", sa.String(length=255), nullable=True),
        sa.Column("utm_term", sa.String(length=255), nullable=True),
        sa.Column("utm_content", sa.String(length=255), nullable=True),
        sa.Column("query_string", sa.String(length=4096), nullable=True),
        sa.Column("ip_hash", sa.String(length=64), nullable=True),
        sa.Column("ua_hash", sa.String(length=64), nullable=True),
        sa.Column("attributed_user_id", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_seen_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_referralsession_session_id"),
        "referralsession",
        ["session_id"],
        unique=True,
    )
    op.create_index(
        op.f("ix_referralsession_ip_hash"), "referralsession", ["ip_hash"], unique=False
    )
    op.create_index(
        op.f("ix_referralsession_ua_hash"), "referralsession", ["ua_hash"], unique=False
    )
    op.create_index(
        op.f("ix_referralsession_attributed_user_id"),
        "referralsession",
        ["attributed_user_id"],
        unique=False,
    )

    op.create_table(
        "referralrecord",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("referrer_id", sa.String(length=255), nullable=False),
        sa.Column("referred_user_id", sa.String(length=255), nullable=False),
        sa.Column("code", sa.String(length=16), nullable=False),
        sa.Column("directory_entry_id", sa.Uuid(), nullable=False),
        sa.Column("attribution_source", attribution_source_enum, nullable=False),
        sa.Column("source_hint", sa.String(length=64), nullable=True),
        sa.Column("landing_path", sa.String(length=2048), nullable=True),
        sa.Column("session_id", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(
            ["directory_entry_id"],
            ["directoryentry.id"],
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_referralrecord_referred_user_id"),
        "referralrecord",
        ["referred_user_id"],
        unique=True,
    )
    op.create_index(
        op.f("ix_referralrecord_referrer_id"),
        "referralrecord",
        ["referrer_id"],
        unique=False,
    )
    op.create_index(
        op.f("ix_referralrecord_code"), "referralrecord", ["code"], unique=False
    )

    op.create_table(
        "referralclickevent",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("session_id", sa.String(length=64), nullable=False),
        sa.Column("referral_code", sa.String(length=16), nullable=False),
        sa.Column("landing_path", sa.String(length=2048), nullable=True),
        sa.Column("referrer_url", sa.String(length=2048), nullable=True),
        sa.Column("utm_source", sa.String(length=255), nullable=True),
        sa.Column("utm_medium", sa.String(length=255), nullable=True),
        sa.Column("utm_campaign", sa.String(length=255), nullable=True),
        sa.Column("utm_term", sa.String(length=255), nullable=True),
        sa.Column("utm_content", sa.String(length=255), nullable=True),
        sa.Column("ip_hash", sa.String(length=64), nullable=True),
        sa.Column("ua_hash", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_referralclickevent_session_id"),
        "referralclickevent",
        ["session_id"],
        unique=False,
    )
    op.create_index(
        op.f("ix_referralclickevent_referral_code"),
        "referralclickevent",
        ["referral_code"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index(op.f("ix_referralclickevent_referral_code"), table_name="referralclickevent")
    op.drop_index(op.f("ix_referralclickevent_session_id"), table_name="referralclickevent")
    op.drop_table("referralclickevent")
    op.drop_index(op.f("ix_referralrecord_code"), table_name="referralrecord")
    op.drop_index(op.f("ix_referralrecord_referrer_id"), table_name="referralrecord")
    op.drop_index(op.f("ix_referralrecord_referred_user_id"), table_name="referralrecord")
    op.drop_table("referralrecord")
    op.drop_index(
        op.f("ix_referralsession_attributed_user_id"), table_name="referralsession"
    )
    op.drop_index(op.f("ix_referralsession_ua_hash"), table_name="referralsession")
    op.drop_index(op.f("ix_referralsession_ip_hash"), table_name="referralsession")
    op.drop_index(op.f("ix_referralsession_session_id"), table_name="referralsession")
    op.drop_table("referralsession")
    op.drop_index(op.f("ix_directoryentry_owner_user_id"), table_name="directoryentry")
    op.drop_index(op.f("ix_directoryentry_code"), table_name="directoryentry")
    op.drop_table("directoryentry")
    op.execute("DROP TYPE IF EXISTS attributionsource")
    op.execute("DROP TYPE IF EXISTS directorystatus")
    op.execute("DROP TYPE IF EXISTS directorykind")
