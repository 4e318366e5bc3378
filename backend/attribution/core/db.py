import logging

from sqlmodel import Session, SQLModel, create_engine, select

from attribution.core.config import settings
from attribution.models import DirectoryEntry, DirectoryKind
from attribution.services.codes import is_valid_code, normalize_code

logger = logging.getLogger(__name__)


def _connect_args(url: str) -> dict[str, object]:
    if url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


engine = create_engine(
    settings.SQLALCHEMY_DATABASE_URI,
    connect_args=_connect_args(settings.SQLALCHEMY_DATABASE_URI),
)


# make sure all SQLModel models are imported (attribution.models) before initializing DB
# otherwise, SQLModel might fail to initialize relationships properly


def init_db(session: Session) -> None:
    # Tables should be created with Alembic migrations.
    # SQLite is only used for local runs, so its tables are created directly.
    bind = session.get_bind()
    if bind.dialect.name == "sqlite":
        SQLModel.metadata.create_all(bind)

    code = normalize_code(settings.FIRST_AFFILIATE_CODE)
    if not code or not settings.FIRST_AFFILIATE_OWNER_ID:
        return
    if not is_valid_code(code):
        logger.warning("FIRST_AFFILIATE_CODE %r is not a valid code, skipping", code)
        return

    entry = session.exec(
        select(DirectoryEntry).where(DirectoryEntry.code == code)
    ).first()
    if entry:
        return

    session.add(
        DirectoryEntry(
            code=code,
            owner_user_id=settings.FIRST_AFFILIATE_OWNER_ID,
            kind=DirectoryKind.AFFILIATE,
        )
    )
    session.commit()
    logger.info("Seeded affiliate code %s", code)
