from typing import Any

from fastapi import APIRouter, HTTPException, Request, Response

from attribution.api.cookies import read_session_cookie, set_session_cookie
from attribution.api.deps import SessionDep
from attribution.core.config import settings
from attribution.models import LandingMeta, ReferralClickCreate, ReferralClickPublic
from attribution.services.clicks import ClickRecorder
from attribution.services.codes import is_valid_code, normalize_code
from attribution.services.fingerprint import Fingerprint, client_ip_from_request

router = APIRouter(prefix="/clicks", tags=["clicks"])


@router.post("/", response_model=ReferralClickPublic)
def track_click(
    *,
    session: SessionDep,
    request: Request,
    response: Response,
    body: ReferralClickCreate,
) -> Any:
    code = normalize_code(body.referral_code)
    if code is None or not is_valid_code(code):
        raise HTTPException(status_code=400, detail="Invalid referral code format")

    fingerprint = Fingerprint.from_raw(
        client_ip_from_request(request),
        body.user_agent or request.headers.get("user-agent"),
        salt=settings.FINGERPRINT_SALT,
    )
    result = ClickRecorder(session).record_click(
        code,
        read_session_cookie(request) or body.session_id,
        fingerprint,
        LandingMeta(**body.model_dump(include=set(LandingMeta.model_fields))),
    )
    set_session_cookie(response, request, result.session_id)
    return ReferralClickPublic(
        session_id=result.session_id,
        tracked=result.tracked,
        session_created=result.session_created,
    )
