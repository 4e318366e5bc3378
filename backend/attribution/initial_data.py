import logging

from sqlmodel import Session

from attribution.core.config import settings
from attribution.core.db import engine, init_db
from attribution.core.logging import setup_logging

logger = logging.getLogger(__name__)


def init() -> None:
    with Session(engine) as session:
        init_db(session)


def main() -> None:
    setup_logging(settings.LOG_LEVEL)
    logger.info("Creating initial data")
    init()
    logger.info("Initial data created")


if __name__ == "__main__":
    main()
