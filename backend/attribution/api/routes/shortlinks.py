from urllib.parse import urlencode

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import RedirectResponse

from attribution.api.cookies import read_session_cookie, set_session_cookie
from attribution.api.deps import SessionDep
from attribution.core.config import settings
from attribution.models import LandingMeta
from attribution.services.clicks import ClickRecorder
from attribution.services.codes import is_valid_code, normalize_code
from attribution.services.fingerprint import Fingerprint, client_ip_from_request
from attribution.services.stores import DirectoryStore

router = APIRouter(tags=["shortlinks"])

UTM_KEYS = ("utm_source", "utm_medium", "utm_campaign", "utm_term", "utm_content")


@router.get("/r/{code}", response_class=RedirectResponse, status_code=307)
def follow_shortlink(session: SessionDep, request: Request, code: str) -> RedirectResponse:
    normalized = normalize_code(code)
    if normalized is None or not is_valid_code(normalized):
        raise HTTPException(status_code=400, detail="Invalid referral code format")
    if DirectoryStore(session).find_by_code(normalized) is None:
        raise HTTPException(status_code=404, detail="Referral code not found")

    params = request.query_params
    landing = LandingMeta(
        landing_path=request.url.path,
        referrer_url=request.headers.get("referer"),
        query_string=request.url.query or None,
        **{key: params.get(key) for key in UTM_KEYS},
    )
    fingerprint = Fingerprint.from_raw(
        client_ip_from_request(request),
        request.headers.get("user-agent"),
        salt=settings.FINGERPRINT_SALT,
    )
    result = ClickRecorder(session).record_click(
        normalized, read_session_cookie(request), fingerprint, landing
    )

    forwarded = [(key, value) for key, value in params.multi_items() if key != "ref"]
    target = f"{settings.FRONTEND_HOST}/?{urlencode([('ref', normalized), *forwarded])}"
    response = RedirectResponse(url=target, status_code=307)
    response.headers["Cache-Control"] = "no-cache, no-store, must-revalidate"
    set_session_cookie(response, request, result.session_id)
    return response
