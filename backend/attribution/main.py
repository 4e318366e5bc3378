from fastapi import FastAPI
from fastapi.routing import APIRoute

from attribution.api.main import api_router
from attribution.api.routes import shortlinks
from attribution.core.config import settings
from attribution.core.logging import setup_logging


def custom_generate_unique_id(route: APIRoute) -> str:
    return f"{route.tags[0]}-{route.name}"


setup_logging(settings.LOG_LEVEL)

app = FastAPI(
    title=settings.PROJECT_NAME,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    generate_unique_id_function=custom_generate_unique_id,
)

app.include_router(api_router, prefix=settings.API_V1_STR)
app.include_router(shortlinks.router)
