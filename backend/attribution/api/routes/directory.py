import re
from datetime import datetime, timedelta
from typing import Any

from fastapi import APIRouter, HTTPException, Query
from sqlalchemy.exc import IntegrityError

from attribution.api.deps import ServiceCaller, SessionDep
from attribution.core.config import settings
from attribution.models import (
    DirectoryEntry,
    DirectoryEntryCreate,
    DirectoryEntryPublic,
    DirectoryEntryUpdate,
    DirectoryStatsPublic,
    get_datetime_utc,
)
from attribution.services.codes import is_valid_code, normalize_code, share_url
from attribution.services.stores import ClickLog, DirectoryStore, ReferralLedger

router = APIRouter(prefix="/directory", tags=["directory"], dependencies=[ServiceCaller])


WINDOW_PATTERN = re.compile(r"^(\d{1,4})d$")


def _stats_window(window: str) -> tuple[int, datetime]:
    match = WINDOW_PATTERN.match(window.strip().lower())
    if match is None:
        raise HTTPException(status_code=400, detail="Window must be like 7d or 30d")
    days = int(match.group(1))
    if not 1 <= days <= settings.STATS_MAX_WINDOW_DAYS:
        raise HTTPException(
            status_code=400,
            detail=f"Window days must be between 1 and {settings.STATS_MAX_WINDOW_DAYS}",
        )
    return days, get_datetime_utc() - timedelta(days=days)


def _public(entry: DirectoryEntry) -> DirectoryEntryPublic:
    return DirectoryEntryPublic(
        id=entry.id,
        code=entry.code,
        owner_user_id=entry.owner_user_id,
        kind=entry.kind,
        status=entry.status,
        is_blocked=entry.is_blocked,
        total_referrals=entry.total_referrals,
        share_url=share_url(entry.code),
        created_at=entry.created_at,
    )


def _get_entry_or_404(store: DirectoryStore, code: str) -> DirectoryEntry:
    normalized = normalize_code(code)
    entry = store.find_by_code(normalized) if normalized else None
    if entry is None:
        raise HTTPException(status_code=404, detail="Referral code not found")
    return entry


@router.post("/", response_model=DirectoryEntryPublic)
def create_directory_entry(*, session: SessionDep, body: DirectoryEntryCreate) -> Any:
    code = normalize_code(body.code)
    if code is None or not is_valid_code(code):
        raise HTTPException(status_code=400, detail="Invalid referral code format")

    store = DirectoryStore(session)
    if store.find_by_code(code) is not None:
        raise HTTPException(status_code=409, detail="Referral code already exists")

    entry = DirectoryEntry.model_validate(body, update={"code": code})
    session.add(entry)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise HTTPException(status_code=409, detail="Referral code already exists")
    session.refresh(entry)
    return _public(entry)


@router.get("/{code}", response_model=DirectoryEntryPublic)
def read_directory_entry(session: SessionDep, code: str) -> Any:
    return _public(_get_entry_or_404(DirectoryStore(session), code))


@router.patch("/{code}", response_model=DirectoryEntryPublic)
def update_directory_entry(
    *, session: SessionDep, code: str, body: DirectoryEntryUpdate
) -> Any:
    entry = _get_entry_or_404(DirectoryStore(session), code)
    entry.sqlmodel_update(body.model_dump(exclude_unset=True))
    entry.updated_at = get_datetime_utc()
    session.add(entry)
    session.commit()
    session.refresh(entry)
    return _public(entry)


@router.get("/{code}/stats", response_model=DirectoryStatsPublic)
def read_directory_stats(
    session: SessionDep, code: str, window: str = Query(default="30d")
) -> Any:
    entry = _get_entry_or_404(DirectoryStore(session), code)
    window_days, since = _stats_window(window)
    clicks, unique_sessions = ClickLog(session).stats_for_code(entry.code, since)
    referrals = ReferralLedger(session).count_for_code(entry.code, since)
    return DirectoryStatsPublic(
        code=entry.code,
        window_days=window_days,
        clicks=clicks,
        unique_sessions=unique_sessions,
        referrals=referrals,
        total_referrals=entry.total_referrals,
    )
