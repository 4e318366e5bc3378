import random
import string
import uuid
from datetime import datetime, timedelta

from sqlmodel import Session

from attribution.models import (
    DirectoryEntry,
    DirectoryKind,
    DirectoryStatus,
    ReferralSession,
    get_datetime_utc,
)


def random_code(length: int = 10) -> str:
    return "".join(random.choices(string.ascii_uppercase + string.digits, k=length))


def random_user_id() -> str:
    return str(uuid.uuid4())


def create_directory_entry(
    db: Session,
    *,
    code: str | None = None,
    owner_user_id: str | None = None,
    kind: DirectoryKind = DirectoryKind.AFFILIATE,
    status: DirectoryStatus = DirectoryStatus.ACTIVE,
    is_blocked: bool = False,
) -> DirectoryEntry:
    entry = DirectoryEntry(
        code=code or random_code(),
        owner_user_id=owner_user_id or random_user_id(),
        kind=kind,
        status=status,
        is_blocked=is_blocked,
    )
    db.add(entry)
    db.commit()
    db.refresh(entry)
    return entry


def create_referral_session(
    db: Session,
    *,
    referral_code: str | None,
    session_id: str | None = None,
    ip_hash: str | None = None,
    ua_hash: str | None = None,
    last_seen_at: datetime | None = None,
    attributed_user_id: str | None = None,
    landing_path: str | None = None,
) -> ReferralSession:
    seen = last_seen_at or get_datetime_utc()
    referral_session = ReferralSession(
        session_id=session_id or uuid.uuid4().hex,
        referral_code=referral_code,
        ip_hash=ip_hash,
        ua_hash=ua_hash,
        landing_path=landing_path,
        attributed_user_id=attributed_user_id,
        created_at=seen,
        last_seen_at=seen,
        expires_at=seen + timedelta(days=30),
    )
    db.add(referral_session)
    db.commit()
    db.refresh(referral_session)
    return referral_session
