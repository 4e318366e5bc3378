"""Decides which directory entry gets credit for a newly registered user.

Signals are tried in a fixed order: an explicit code typed at signup, the
attribution session recovered from the browser, and finally a hashed
IP + User-Agent match against recent unattributed sessions. The first
signal that yields a code wins; that code is then validated and written to
the ledger at most once per user.

Every outcome is returned as a value. Nothing here should ever make a
signup fail, so storage errors are reported as ``INTERNAL`` instead of
being raised.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from attribution.core.config import settings
from attribution.models import (
    AttributionSource,
    DirectoryEntry,
    ReferralRecord,
    ReferralSession,
    get_datetime_utc,
)
from attribution.services.codes import is_valid_code, normalize_code
from attribution.services.context import AttributionContext
from attribution.services.fingerprint import Fingerprint
from attribution.services.stores import DirectoryStore, ReferralLedger, SessionStore

logger = logging.getLogger(__name__)


class AttributionErrorKind(str, Enum):
    NO_CODE = "no_code"
    INVALID_FORMAT = "invalid_format"
    UNKNOWN_CODE = "unknown_code"
    INACTIVE_REFERRER = "inactive_referrer"
    SELF_REFERRAL = "self_referral"
    ALREADY_ATTRIBUTED = "already_attributed"
    INTERNAL = "internal"


@dataclass(frozen=True)
class AttributionRequest:
    new_user_id: str
    explicit_code: str | None = None
    context: AttributionContext = field(default_factory=AttributionContext)
    landing_path: str | None = None
    source_hint: str | None = None
    client_ip: str | None = None
    user_agent: str | None = None


@dataclass(frozen=True)
class Attributed:
    referrer_id: str
    code: str
    source: AttributionSource
    record: ReferralRecord


@dataclass(frozen=True)
class AttributionFailure:
    kind: AttributionErrorKind
    code: str | None = None

    @property
    def is_benign(self) -> bool:
        """True when the caller should treat the result like success or a no-op."""
        return self.kind in (
            AttributionErrorKind.NO_CODE,
            AttributionErrorKind.ALREADY_ATTRIBUTED,
        )


AttributionResult = Attributed | AttributionFailure


@dataclass
class _Candidate:
    code: str | None = None
    source: AttributionSource | None = None
    session: ReferralSession | None = None
    matched: ReferralSession | None = None

    def linked_sessions(self) -> list[ReferralSession]:
        return [s for s in (self.session, self.matched) if s is not None]


class AttributionResolver:
    def __init__(
        self,
        session: Session,
        *,
        fingerprint_salt: str | None = None,
        fingerprint_window: timedelta | None = None,
        clock: Callable[[], datetime] = get_datetime_utc,
    ) -> None:
        self.sessions = SessionStore(session)
        self.directory = DirectoryStore(session)
        self.ledger = ReferralLedger(session)
        self.fingerprint_salt = (
            settings.FINGERPRINT_SALT if fingerprint_salt is None else fingerprint_salt
        )
        self.fingerprint_window = fingerprint_window or timedelta(
            minutes=settings.FINGERPRINT_WINDOW_MINUTES
        )
        self.clock = clock

    def resolve(self, request: AttributionRequest) -> AttributionResult:
        if not request.new_user_id:
            raise ValueError("new_user_id is required")
        try:
            return self._resolve(request)
        except SQLAlchemyError:
            logger.exception(
                "[referral] Store failure while attributing user=%s",
                request.new_user_id,
            )
            return AttributionFailure(AttributionErrorKind.INTERNAL)

    def _resolve(self, request: AttributionRequest) -> AttributionResult:
        now = self.clock()
        candidate = self._find_candidate(request, now)

        if candidate.code is None:
            logger.debug("[referral] No code for user=%s", request.new_user_id)
            return AttributionFailure(AttributionErrorKind.NO_CODE)

        code = candidate.code
        source = candidate.source or AttributionSource.EXPLICIT

        if not is_valid_code(code):
            logger.info(
                "[referral] Invalid ref code format: %r, source=%s", code, source.value
            )
            return AttributionFailure(AttributionErrorKind.INVALID_FORMAT, code)

        entry = self.directory.find_by_code(code)
        if entry is None:
            logger.info("[referral] Code not found: %s, source=%s", code, source.value)
            return AttributionFailure(AttributionErrorKind.UNKNOWN_CODE, code)

        if not entry.is_creditable:
            logger.info(
                "[referral] Referrer not active: code=%s status=%s blocked=%s",
                code,
                entry.status.value,
                entry.is_blocked,
            )
            return AttributionFailure(AttributionErrorKind.INACTIVE_REFERRER, code)

        if entry.owner_user_id == request.new_user_id:
            logger.warning(
                "[referral] Self-referral rejected: user=%s code=%s source=%s",
                request.new_user_id,
                code,
                source.value,
            )
            return AttributionFailure(AttributionErrorKind.SELF_REFERRAL, code)

        if self.ledger.has_record_for(request.new_user_id):
            logger.debug("[referral] User already attributed: user=%s", request.new_user_id)
            return AttributionFailure(AttributionErrorKind.ALREADY_ATTRIBUTED, code)

        return self._record(request, entry, source, candidate.linked_sessions())

    def _find_candidate(self, request: AttributionRequest, now: datetime) -> _Candidate:
        candidate = _Candidate()

        explicit = normalize_code(request.explicit_code)
        if explicit is not None:
            candidate.code = explicit
            candidate.source = AttributionSource.EXPLICIT

        session_id = request.context.session_id
        if session_id:
            found = self.sessions.get_by_session_id(session_id, now=now)
            if found is not None and _linkable(found, request.new_user_id):
                candidate.session = found
                if candidate.code is None and found.referral_code:
                    candidate.code = normalize_code(found.referral_code)
                    candidate.source = AttributionSource.SESSION

        if candidate.code is None:
            fingerprint = Fingerprint.from_raw(
                request.client_ip, request.user_agent, salt=self.fingerprint_salt
            )
            if fingerprint.is_complete:
                matched = self.sessions.get_by_fingerprint(
                    fingerprint.ip_hash,  # type: ignore[arg-type]
                    fingerprint.ua_hash,  # type: ignore[arg-type]
                    now - self.fingerprint_window,
                    now=now,
                )
                if matched is not None:
                    candidate.code = normalize_code(matched.referral_code)
                    candidate.source = AttributionSource.FALLBACK_FINGERPRINT
                    candidate.matched = matched

        return candidate

    def _record(
        self,
        request: AttributionRequest,
        entry: DirectoryEntry,
        source: AttributionSource,
        referral_sessions: list[ReferralSession],
    ) -> AttributionResult:
        landing_path = request.landing_path
        if landing_path is None:
            landing_path = next(
                (s.landing_path for s in referral_sessions if s.landing_path), None
            )

        record = ReferralRecord(
            referrer_id=entry.owner_user_id,
            referred_user_id=request.new_user_id,
            code=entry.code,
            directory_entry_id=entry.id,
            attribution_source=source,
            source_hint=request.source_hint,
            landing_path=landing_path,
            session_id=referral_sessions[0].session_id if referral_sessions else None,
        )
        if not self.ledger.insert(record):
            logger.info(
                "[referral] Concurrent attribution for user=%s, keeping existing record",
                request.new_user_id,
            )
            return AttributionFailure(AttributionErrorKind.ALREADY_ATTRIBUTED, entry.code)

        for referral_session in referral_sessions:
            self.sessions.mark_attributed(referral_session, request.new_user_id)
        self.directory.increment_referral_count(entry)

        logger.info(
            "[referral] OK: user=%s, code=%s, source=%s, landing=%s",
            request.new_user_id,
            entry.code,
            source.value,
            landing_path or "n/a",
        )
        return Attributed(
            referrer_id=entry.owner_user_id,
            code=entry.code,
            source=source,
            record=record,
        )


def _linkable(referral_session: ReferralSession, user_id: str) -> bool:
    # A session already credited to someone else is never reused
    return referral_session.attributed_user_id in (None, user_id)

