from fastapi import APIRouter

from attribution.api.routes import attributions, clicks, directory

api_router = APIRouter()
api_router.include_router(clicks.router)
api_router.include_router(attributions.router)
api_router.include_router(directory.router)
