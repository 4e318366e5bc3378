from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError

from attribution.models import BackupSession


def parse_backup(raw: Mapping[str, Any] | None) -> BackupSession | None:
    if not raw:
        return None
    try:
        return BackupSession.model_validate(raw)
    except ValidationError:
        return None


@dataclass(frozen=True)
class AttributionContext:
    """Session id the caller recovered from the browser, and where it came from."""

    session_id: str | None = None
    origin: str | None = None

    @classmethod
    def build(
        cls,
        *,
        cookie_session_id: str | None = None,
        explicit_session_id: str | None = None,
        backup: Mapping[str, Any] | None = None,
        now: datetime | None = None,
    ) -> "AttributionContext":
        # Cookie first, then whatever the signup form forwarded, then the
        # local-storage backup if it has not expired yet.
        if cookie_session_id:
            return cls(session_id=cookie_session_id, origin="cookie")
        if explicit_session_id:
            return cls(session_id=explicit_session_id, origin="request")
        meta = parse_backup(backup)
        if meta is not None:
            now = now or datetime.now(timezone.utc)
            if meta.expiresAt > int(now.timestamp() * 1000):
                return cls(session_id=meta.refSid, origin="backup")
        return cls()
