"""Storage collaborators for attribution, one instance per request session."""

import logging
from datetime import datetime

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, col, func, select

from attribution.models import (
    DirectoryEntry,
    ReferralClickEvent,
    ReferralRecord,
    ReferralSession,
    get_datetime_utc,
)

logger = logging.getLogger(__name__)


class SessionStore:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get_by_session_id(
        self, session_id: str, *, now: datetime
    ) -> ReferralSession | None:
        return self.session.exec(
            select(ReferralSession).where(
                ReferralSession.session_id == session_id,
                ReferralSession.expires_at > now,
            )
        ).first()

    def get_by_fingerprint(
        self, ip_hash: str, ua_hash: str, since: datetime, *, now: datetime
    ) -> ReferralSession | None:
        """Most recently seen unattributed session matching both hashes."""
        return self.session.exec(
            select(ReferralSession)
            .where(
                ReferralSession.ip_hash == ip_hash,
                ReferralSession.ua_hash == ua_hash,
                col(ReferralSession.attributed_user_id).is_(None),
                col(ReferralSession.referral_code).is_not(None),
                ReferralSession.last_seen_at >= since,
                ReferralSession.expires_at > now,
            )
            .order_by(col(ReferralSession.last_seen_at).desc())
            .limit(1)
        ).first()

    def create(self, referral_session: ReferralSession) -> ReferralSession:
        self.session.add(referral_session)
        self.session.commit()
        self.session.refresh(referral_session)
        return referral_session

    def touch(
        self, referral_session: ReferralSession, *, now: datetime, expires_at: datetime
    ) -> None:
        referral_session.last_seen_at = now
        referral_session.expires_at = expires_at
        self.session.add(referral_session)
        self.session.commit()

    def mark_attributed(self, referral_session: ReferralSession, user_id: str) -> bool:
        """Link a session to a user once; never overwrites another user's link."""
        result = self.session.exec(  # type: ignore[call-overload]
            update(ReferralSession)
            .where(
                col(ReferralSession.id) == referral_session.id,
                col(ReferralSession.attributed_user_id).is_(None),
            )
            .values(attributed_user_id=user_id)
            .execution_options(synchronize_session=False)
        )
        self.session.commit()
        self.session.refresh(referral_session)
        if result.rowcount == 1:  # type: ignore[attr-defined]
            return True
        return referral_session.attributed_user_id == user_id


class DirectoryStore:
    def __init__(self, session: Session) -> None:
        self.session = session

    def find_by_code(self, code: str) -> DirectoryEntry | None:
        return self.session.exec(
            select(DirectoryEntry).where(DirectoryEntry.code == code)
        ).first()

    def increment_referral_count(self, entry: DirectoryEntry) -> bool:
        # Counter is informational; the ledger is authoritative
        try:
            entry.total_referrals = (entry.total_referrals or 0) + 1
            entry.updated_at = get_datetime_utc()
            self.session.add(entry)
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            logger.warning(
                "[referral] Failed to bump referral counter for code=%s",
                entry.code,
                exc_info=True,
            )
            return False
        return True


class ReferralLedger:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get_for(self, user_id: str) -> ReferralRecord | None:
        return self.session.exec(
            select(ReferralRecord).where(ReferralRecord.referred_user_id == user_id)
        ).first()

    def has_record_for(self, user_id: str) -> bool:
        return self.get_for(user_id) is not None

    def insert(self, record: ReferralRecord) -> bool:
        """Append a record; False means another request already attributed the user."""
        self.session.add(record)
        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            return False
        self.session.refresh(record)
        return True

    def count_for_code(self, code: str, since: datetime) -> int:
        return self.session.exec(
            select(func.count())
            .select_from(ReferralRecord)
            .where(ReferralRecord.code == code, ReferralRecord.created_at >= since)
        ).one()


class ClickLog:
    def __init__(self, session: Session) -> None:
        self.session = session

    def has_recent(self, session_id: str, code: str, since: datetime) -> bool:
        existing = self.session.exec(
            select(ReferralClickEvent.id).where(
                ReferralClickEvent.session_id == session_id,
                ReferralClickEvent.referral_code == code,
                ReferralClickEvent.created_at >= since,
            )
        ).first()
        return existing is not None

    def add(self, event: ReferralClickEvent) -> ReferralClickEvent:
        self.session.add(event)
        self.session.commit()
        self.session.refresh(event)
        return event

    def stats_for_code(self, code: str, since: datetime) -> tuple[int, int]:
        clicks, unique_sessions = self.session.exec(
            select(
                func.count(col(ReferralClickEvent.id)),
                func.count(func.distinct(ReferralClickEvent.session_id)),
            ).where(
                ReferralClickEvent.referral_code == code,
                ReferralClickEvent.created_at >= since,
            )
        ).one()
        return clicks, unique_sessions
