import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlmodel import Session

from attribution.core.config import settings
from attribution.models import (
    LandingMeta,
    ReferralClickEvent,
    ReferralSession,
    get_datetime_utc,
)
from attribution.services.fingerprint import Fingerprint
from attribution.services.stores import ClickLog, SessionStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClickResult:
    session_id: str
    session_created: bool
    tracked: bool


def new_session_id() -> str:
    return secrets.token_urlsafe(24)


class ClickRecorder:
    def __init__(
        self,
        session: Session,
        *,
        session_ttl: timedelta | None = None,
        debounce: timedelta | None = None,
        clock: Callable[[], datetime] = get_datetime_utc,
    ) -> None:
        self.sessions = SessionStore(session)
        self.clicks = ClickLog(session)
        self.session_ttl = session_ttl or timedelta(days=settings.REFERRAL_SESSION_TTL_DAYS)
        self.debounce = debounce or timedelta(minutes=settings.CLICK_DEBOUNCE_MINUTES)
        self.clock = clock

    def record_click(
        self,
        code: str,
        session_id: str | None,
        fingerprint: Fingerprint,
        landing: LandingMeta,
    ) -> ClickResult:
        """Touch or open the attribution session, then log a debounced click.

        ``code`` must already be normalized. An unknown or expired
        ``session_id`` is replaced by a freshly minted one, which the caller
        is expected to hand back to the browser as a cookie.
        """
        now = self.clock()
        expires_at = now + self.session_ttl

        existing = None
        if session_id:
            existing = self.sessions.get_by_session_id(session_id, now=now)

        if existing is not None:
            self.sessions.touch(existing, now=now, expires_at=expires_at)
            current_id = existing.session_id
            created = False
        else:
            current_id = new_session_id()
            self.sessions.create(
                ReferralSession(
                    session_id=current_id,
                    referral_code=code,
                    ip_hash=fingerprint.ip_hash,
                    ua_hash=fingerprint.ua_hash,
                    created_at=now,
                    last_seen_at=now,
                    expires_at=expires_at,
                    **landing.model_dump(include=set(LandingMeta.model_fields)),
                )
            )
            created = True
            logger.info("[referral] New attribution session for code=%s", code)

        if self.clicks.has_recent(current_id, code, now - self.debounce):
            logger.debug("[referral] Click already tracked (duplicate) code=%s", code)
            return ClickResult(session_id=current_id, session_created=created, tracked=False)

        self.clicks.add(
            ReferralClickEvent(
                session_id=current_id,
                referral_code=code,
                landing_path=landing.landing_path,
                referrer_url=landing.referrer_url,
                utm_source=landing.utm_source,
                utm_medium=landing.utm_medium,
                utm_campaign=landing.utm_campaign,
                utm_term=landing.utm_term,
                utm_content=landing.utm_content,
                ip_hash=fingerprint.ip_hash,
                ua_hash=fingerprint.ua_hash,
                created_at=now,
            )
        )
        return ClickResult(session_id=current_id, session_created=created, tracked=True)
