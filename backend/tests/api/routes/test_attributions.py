import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError
from sqlmodel import Session, select

from attribution.core.config import settings
from attribution.models import ReferralRecord, ReferralSession
from attribution.services.stores import DirectoryStore
from tests.utils.utils import create_directory_entry, random_user_id


def _attribute(
    client: TestClient, headers: dict[str, str], **payload: object
) -> dict[str, object]:
    response = client.post(
        f"{settings.API_V1_STR}/attributions/", headers=headers, json=payload
    )
    assert response.status_code == 200
    return response.json()


def test_attribution_requires_service_key(client: TestClient) -> None:
    response = client.post(
        f"{settings.API_V1_STR}/attributions/",
        headers={"X-Service-Key": "wrong"},
        json={"user_id": random_user_id(), "code": "ABCDEF12"},
    )
    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid service key"


def test_attribute_with_explicit_code(
    client: TestClient, service_headers: dict[str, str], db: Session
) -> None:
    entry = create_directory_entry(db, code="ABCDEF12")
    user_id = random_user_id()

    payload = _attribute(
        client,
        service_headers,
        user_id=user_id,
        code="abcdef12",
        landing_path="/preise",
        attribution_source="query",
    )
    assert payload["outcome"] == "attributed"
    assert payload["code"] == "ABCDEF12"
    assert payload["referrer_id"] == entry.owner_user_id
    assert payload["source"] == "explicit"

    record = db.exec(
        select(ReferralRecord).where(ReferralRecord.referred_user_id == user_id)
    ).one()
    assert record.landing_path == "/preise"
    assert record.source_hint == "query"

    read_response = client.get(
        f"{settings.API_V1_STR}/attributions/{user_id}", headers=service_headers
    )
    assert read_response.status_code == 200
    assert read_response.json()["code"] == "ABCDEF12"


def test_repeat_attribution_reports_existing_record(
    client: TestClient, service_headers: dict[str, str], db: Session
) -> None:
    entry = create_directory_entry(db, code="REPEAT001")
    create_directory_entry(db, code="REPEAT002")
    user_id = random_user_id()

    _attribute(client, service_headers, user_id=user_id, code="REPEAT001")
    payload = _attribute(client, service_headers, user_id=user_id, code="REPEAT002")

    assert payload["outcome"] == "already_attributed"
    assert payload["code"] == "REPEAT001"
    assert payload["referrer_id"] == entry.owner_user_id


def test_no_code_is_a_silent_no_op(
    client: TestClient, service_headers: dict[str, str]
) -> None:
    payload = _attribute(client, service_headers, user_id=random_user_id())

    assert payload["outcome"] == "no_code"
    assert payload["reason"] is None


@pytest.mark.parametrize(
    ("code", "reason"),
    [("AB", "invalid_format"), ("NOSUCH999", "unknown_code")],
)
def test_rejected_codes_report_reason(
    client: TestClient, service_headers: dict[str, str], code: str, reason: str
) -> None:
    payload = _attribute(client, service_headers, user_id=random_user_id(), code=code)

    assert payload["outcome"] == "rejected"
    assert payload["reason"] == reason


def test_self_referral_is_rejected(
    client: TestClient, service_headers: dict[str, str], db: Session
) -> None:
    user_id = random_user_id()
    create_directory_entry(db, code="SELFCODE1", owner_user_id=user_id)

    payload = _attribute(client, service_headers, user_id=user_id, code="SELFCODE1")

    assert payload["outcome"] == "rejected"
    assert payload["reason"] == "self_referral"


def test_attribution_from_click_cookie(
    client: TestClient, service_headers: dict[str, str], db: Session
) -> None:
    entry = create_directory_entry(db, code="COOKIE001")
    click_response = client.post(
        f"{settings.API_V1_STR}/clicks/",
        json={"referral_code": "cookie001", "landing_path": "/funktionen"},
    )
    assert click_response.status_code == 200
    assert settings.REFERRAL_COOKIE_NAME in client.cookies

    user_id = random_user_id()
    payload = _attribute(client, service_headers, user_id=user_id)

    assert payload["outcome"] == "attributed"
    assert payload["source"] == "session"
    assert payload["referrer_id"] == entry.owner_user_id
    stored = db.exec(
        select(ReferralSession).where(
            ReferralSession.session_id == click_response.json()["session_id"]
        )
    ).one()
    assert stored.attributed_user_id == user_id


def test_attribution_from_backup_session(
    client: TestClient, service_headers: dict[str, str], db: Session
) -> None:
    create_directory_entry(db, code="BACKUP001")
    click_response = client.post(
        f"{settings.API_V1_STR}/clicks/", json={"referral_code": "BACKUP001"}
    )
    session_id = click_response.json()["session_id"]
    client.cookies.clear()

    payload = _attribute(
        client,
        service_headers,
        user_id=random_user_id(),
        backup_session={
            "refSid": session_id,
            "refCode": "BACKUP001",
            "createdAt": 1_700_000_000_000,
            "expiresAt": 4_102_444_800_000,
        },
    )

    assert payload["outcome"] == "attributed"
    assert payload["source"] == "session"


def test_attribution_from_fingerprint(
    client: TestClient, service_headers: dict[str, str], db: Session
) -> None:
    create_directory_entry(db, code="FALLBK01")
    forwarded = {"X-Forwarded-For": "203.0.113.50, 10.0.0.1"}
    user_agent = "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0) Mobile/15E148"
    click_response = client.post(
        f"{settings.API_V1_STR}/clicks/",
        headers=forwarded,
        json={"referral_code": "FALLBK01", "user_agent": user_agent},
    )
    assert click_response.status_code == 200
    client.cookies.clear()

    payload = _attribute(
        client,
        {**service_headers, **forwarded},
        user_id=random_user_id(),
        user_agent=user_agent,
    )

    assert payload["outcome"] == "attributed"
    assert payload["source"] == "fallback-fingerprint"


def test_attribution_from_fingerprint_with_forwarded_client_ip(
    client: TestClient, service_headers: dict[str, str], db: Session
) -> None:
    create_directory_entry(db, code="FALLBK02")
    user_agent = "Mozilla/5.0 (Macintosh; Intel Mac OS X 14_0) Safari/605.1.15"
    click_response = client.post(
        f"{settings.API_V1_STR}/clicks/",
        headers={"X-Forwarded-For": "198.51.100.23"},
        json={"referral_code": "FALLBK02", "user_agent": user_agent},
    )
    assert click_response.status_code == 200
    client.cookies.clear()

    payload = _attribute(
        client,
        service_headers,
        user_id=random_user_id(),
        user_agent=user_agent,
        client_ip="198.51.100.23",
    )

    assert payload["outcome"] == "attributed"
    assert payload["code"] == "FALLBK02"
    assert payload["source"] == "fallback-fingerprint"


def test_store_outage_returns_503(
    client: TestClient,
    service_headers: dict[str, str],
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    def unreachable(self: DirectoryStore, code: str) -> None:
        raise OperationalError("SELECT", {}, Exception("connection refused"))

    monkeypatch.setattr(DirectoryStore, "find_by_code", unreachable)
    response = client.post(
        f"{settings.API_V1_STR}/attributions/",
        headers=service_headers,
        json={"user_id": random_user_id(), "code": "OUTAGE001"},
    )

    assert response.status_code == 503
    assert response.json()["detail"] == "Attribution temporarily unavailable"


def test_read_attribution_not_found(
    client: TestClient, service_headers: dict[str, str]
) -> None:
    response = client.get(
        f"{settings.API_V1_STR}/attributions/{random_user_id()}", headers=service_headers
    )
    assert response.status_code == 404
    assert response.json()["detail"] == "No referral recorded for user"
