import re

from attribution.core.config import settings

CODE_PATTERN = re.compile(r"^[A-Z0-9]{6,16}$")


def normalize_code(raw: str | None) -> str | None:
    """Trim and uppercase a user-entered code; blank input counts as no code."""
    if raw is None:
        return None
    value = raw.strip().upper()
    return value or None


def is_valid_code(code: str) -> bool:
    return CODE_PATTERN.fullmatch(code) is not None


def share_url(code: str) -> str:
    return f"{settings.FRONTEND_HOST}/r/{code}"
