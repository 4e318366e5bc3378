import secrets
from collections.abc import Generator
from typing import Annotated

from fastapi import Depends, Header, HTTPException
from sqlmodel import Session

from attribution.core.config import settings
from attribution.core.db import engine


def get_db() -> Generator[Session, None, None]:
    with Session(engine) as session:
        yield session


SessionDep = Annotated[Session, Depends(get_db)]


def verify_service_key(
    x_service_key: Annotated[str | None, Header()] = None,
) -> None:
    if not x_service_key or not secrets.compare_digest(
        x_service_key, settings.SERVICE_API_KEY
    ):
        raise HTTPException(status_code=401, detail="Invalid service key")


ServiceCaller = Depends(verify_service_key)
