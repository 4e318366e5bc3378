from fastapi import Request, Response

from attribution.core.config import settings


def read_session_cookie(request: Request) -> str | None:
    value = request.cookies.get(settings.REFERRAL_COOKIE_NAME)
    return value or None


def set_session_cookie(response: Response, request: Request, session_id: str) -> None:
    secure = request.url.scheme == "https" or settings.ENVIRONMENT != "local"
    response.set_cookie(
        key=settings.REFERRAL_COOKIE_NAME,
        value=session_id,
        max_age=settings.REFERRAL_COOKIE_MAX_AGE,
        path="/",
        samesite="lax",
        secure=secure,
    )
