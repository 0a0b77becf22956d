from fastapi import APIRouter

from tvbackend.api.v1.auth import router as auth_router
from tvbackend.api.v1.config import router as config_router

api_router = APIRouter()
api_router.include_router(config_router)
api_router.include_router(auth_router)
