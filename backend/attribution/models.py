import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


def get_datetime_utc() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone=True columns
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class DirectoryKind(str, Enum):
    AFFILIATE = "affiliate"
    PEER = "peer"


class DirectoryStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class AttributionSource(str, Enum):
    EXPLICIT = "explicit"
    SESSION = "session"
    FALLBACK_FINGERPRINT = "fallback-fingerprint"


# Shared properties
class DirectoryEntryBase(SQLModel):
    code: str = Field(unique=True, index=True, min_length=6, max_length=16)
    owner_user_id: str = Field(index=True, min_length=1, max_length=255)
    kind: DirectoryKind = DirectoryKind.AFFILIATE
    status: DirectoryStatus = DirectoryStatus.ACTIVE
    is_blocked: bool = False


# Properties to receive on entry creation
class DirectoryEntryCreate(DirectoryEntryBase):
    pass


# Properties to receive on entry update, all are optional
class DirectoryEntryUpdate(SQLModel):
    status: DirectoryStatus | None = None
    is_blocked: bool | None = None


# Database model, database table inferred from class name
class DirectoryEntry(DirectoryEntryBase, table=True):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    total_referrals: int = Field(default=0, ge=0)
    created_at: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
    )
    updated_at: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
    )

    @property
    def is_creditable(self) -> bool:
        return self.status == DirectoryStatus.ACTIVE and not self.is_blocked


class DirectoryEntryPublic(DirectoryEntryBase):
    id: uuid.UUID
    total_referrals: int
    share_url: str
    created_at: datetime | None = None


class DirectoryStatsPublic(SQLModel):
    code: str
    window_days: int
    clicks: int
    unique_sessions: int
    referrals: int
    total_referrals: int


class ReferralSession(SQLModel, table=True):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    session_id: str = Field(unique=True, index=True, max_length=64)
    referral_code: str | None = Field(default=None, max_length=16)
    landing_path: str | None = Field(default=None, max_length=2048)
    referrer_url: str | None = Field(default=None, max_length=2048)
    utm_source: str | None = Field(default=None, max_length=255)
    utm_medium: str | None = Field(default=None, max_length=255)
    utm_campaign: str | None = Field(default=None, max_length=255)
    utm_term: str | None = Field(default=None, max_length=255)
    utm_content: str | None = Field(default=None, max_length=255)
    query_string: str | None = Field(default=None, max_length=4096)
    ip_hash: str | None = Field(default=None, index=True, max_length=64)
    ua_hash: str | None = Field(default=None, index=True, max_length=64)
    attributed_user_id: str | None = Field(default=None, index=True, max_length=255)
    created_at: datetime = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
    )
    last_seen_at: datetime = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
    )
    expires_at: datetime = Field(
        sa_type=DateTime(timezone=True),  # type: ignore
    )


class ReferralRecord(SQLModel, table=True):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    referrer_id: str = Field(index=True, max_length=255)
    referred_user_id: str = Field(unique=True, index=True, max_length=255)
    code: str = Field(index=True, max_length=16)
    directory_entry_id: uuid.UUID = Field(
        foreign_key="directoryentry.id", nullable=False, ondelete="CASCADE"
    )
    attribution_source: AttributionSource
    source_hint: str | None = Field(default=None, max_length=64)
    landing_path: str | None = Field(default=None, max_length=2048)
    session_id: str | None = Field(default=None, max_length=64)
    created_at: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
    )


class ReferralRecordPublic(SQLModel):
    id: uuid.UUID
    referrer_id: str
    referred_user_id: str
    code: str
    attribution_source: AttributionSource
    source_hint: str | None = None
    landing_path: str | None = None
    created_at: datetime | None = None


class ReferralClickEvent(SQLModel, table=True):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    session_id: str = Field(index=True, max_length=64)
    referral_code: str = Field(index=True, max_length=16)
    landing_path: str | None = Field(default=None, max_length=2048)
    referrer_url: str | None = Field(default=None, max_length=2048)
    utm_source: str | None = Field(default=None, max_length=255)
    utm_medium: str | None = Field(default=None, max_length=255)
    utm_campaign: str | None = Field(default=None, max_length=255)
    utm_term: str | None = Field(default=None, max_length=255)
    utm_content: str | None = Field(default=None, max_length=255)
    ip_hash: str | None = Field(default=None, max_length=64)
    ua_hash: str | None = Field(default=None, max_length=64)
    created_at: datetime = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
    )


# Landing metadata sent by the browser alongside a click
class LandingMeta(SQLModel):
    landing_path: str | None = Field(default=None, max_length=2048)
    referrer_url: str | None = Field(default=None, max_length=2048)
    utm_source: str | None = Field(default=None, max_length=255)
    utm_medium: str | None = Field(default=None, max_length=255)
    utm_campaign: str | None = Field(default=None, max_length=255)
    utm_term: str | None = Field(default=None, max_length=255)
    utm_content: str | None = Field(default=None, max_length=255)
    query_string: str | None = Field(default=None, max_length=4096)


class ReferralClickCreate(LandingMeta):
    referral_code: str = Field(min_length=1, max_length=64)
    session_id: str | None = Field(default=None, max_length=64)
    user_agent: str | None = Field(default=None, max_length=1024)


class ReferralClickPublic(SQLModel):
    session_id: str
    tracked: bool
    session_created: bool


# Local-storage copy of the session id kept by the browser
class BackupSession(SQLModel):
    refSid: str = Field(min_length=1, max_length=64)
    refCode: str | None = Field(default=None, max_length=64)
    createdAt: int | None = None
    expiresAt: int


class AttributionCreate(SQLModel):
    user_id: str = Field(min_length=1, max_length=255)
    code: str | None = Field(default=None, max_length=64)
    session_id: str | None = Field(default=None, max_length=64)
    # Raw local-storage payload; malformed copies are ignored, not rejected
    backup_session: dict[str, Any] | None = None
    landing_path: str | None = Field(default=None, max_length=2048)
    attribution_source: str | None = Field(default=None, max_length=64)
    user_agent: str | None = Field(default=None, max_length=1024)
    # End user's address as seen by the signup backend
    client_ip: str | None = Field(default=None, max_length=64)


class AttributionOutcome(str, Enum):
    ATTRIBUTED = "attributed"
    ALREADY_ATTRIBUTED = "already_attributed"
    NO_CODE = "no_code"
    REJECTED = "rejected"


class AttributionPublic(SQLModel):
    outcome: AttributionOutcome
    reason: str | None = None
    referrer_id: str | None = None
    code: str | None = None
    source: AttributionSource | None = None

