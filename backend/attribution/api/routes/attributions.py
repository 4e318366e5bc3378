from typing import Any

from fastapi import APIRouter, HTTPException, Request

from attribution.api.cookies import read_session_cookie
from attribution.api.deps import ServiceCaller, SessionDep
from attribution.models import (
    AttributionCreate,
    AttributionOutcome,
    AttributionPublic,
    ReferralRecordPublic,
)
from attribution.services.context import AttributionContext
from attribution.services.fingerprint import client_ip_from_request
from attribution.services.resolver import (
    AttributionErrorKind,
    AttributionRequest,
    AttributionResolver,
    Attributed,
)
from attribution.services.stores import ReferralLedger

router = APIRouter(
    prefix="/attributions", tags=["attributions"], dependencies=[ServiceCaller]
)


@router.post("/", response_model=AttributionPublic)
def create_attribution(
    *, session: SessionDep, request: Request, body: AttributionCreate
) -> Any:
    context = AttributionContext.build(
        cookie_session_id=read_session_cookie(request),
        explicit_session_id=body.session_id,
        backup=body.backup_session,
    )
    result = AttributionResolver(session).resolve(
        AttributionRequest(
            new_user_id=body.user_id,
            explicit_code=body.code,
            context=context,
            landing_path=body.landing_path,
            source_hint=body.attribution_source,
            client_ip=body.client_ip or client_ip_from_request(request),
            user_agent=body.user_agent or request.headers.get("user-agent"),
        )
    )

    if isinstance(result, Attributed):
        return AttributionPublic(
            outcome=AttributionOutcome.ATTRIBUTED,
            referrer_id=result.referrer_id,
            code=result.code,
            source=result.source,
        )

    if result.kind == AttributionErrorKind.INTERNAL:
        raise HTTPException(status_code=503, detail="Attribution temporarily unavailable")
    if result.kind == AttributionErrorKind.NO_CODE:
        return AttributionPublic(outcome=AttributionOutcome.NO_CODE)
    if result.kind == AttributionErrorKind.ALREADY_ATTRIBUTED:
        existing = ReferralLedger(session).get_for(body.user_id)
        return AttributionPublic(
            outcome=AttributionOutcome.ALREADY_ATTRIBUTED,
            referrer_id=existing.referrer_id if existing else None,
            code=existing.code if existing else None,
            source=existing.attribution_source if existing else None,
        )
    return AttributionPublic(
        outcome=AttributionOutcome.REJECTED,
        reason=result.kind.value,
        code=result.code,
    )


@router.get("/{user_id}", response_model=ReferralRecordPublic)
def read_attribution(session: SessionDep, user_id: str) -> Any:
    record = ReferralLedger(session).get_for(user_id)
    if record is None:
        raise HTTPException(status_code=404, detail="No referral recorded for user")
    return record
