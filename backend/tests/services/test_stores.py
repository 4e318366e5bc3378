from sqlmodel import Session

from attribution.models import ReferralSession
from attribution.services.stores import SessionStore
from tests.utils.utils import create_referral_session, random_user_id


def test_mark_attributed_links_unclaimed_session(db: Session) -> None:
    referral_session = create_referral_session(db, referral_code="LINKME01")
    user_id = random_user_id()

    assert SessionStore(db).mark_attributed(referral_session, user_id) is True
    assert referral_session.attributed_user_id == user_id


def test_mark_attributed_is_idempotent_for_same_user(db: Session) -> None:
    user_id = random_user_id()
    referral_session = create_referral_session(
        db, referral_code="LINKME02", attributed_user_id=user_id
    )

    assert SessionStore(db).mark_attributed(referral_session, user_id) is True
    assert referral_session.attributed_user_id == user_id


def test_mark_attributed_keeps_link_made_by_concurrent_request(db: Session) -> None:
    referral_session = create_referral_session(db, referral_code="LINKME03")
    first_user = random_user_id()
    second_user = random_user_id()

    # Another request links the row after this one loaded it
    with Session(db.get_bind()) as other:
        competing = other.get(ReferralSession, referral_session.id)
        assert competing is not None
        competing.attributed_user_id = first_user
        other.add(competing)
        other.commit()

    assert SessionStore(db).mark_attributed(referral_session, second_user) is False
    assert referral_session.attributed_user_id == first_user
