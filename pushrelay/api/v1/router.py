from fastapi import APIRouter

from pushrelay.api.v1.endpoints import (
    device_endpoints,
    push_endpoints,
)

api_router = APIRouter()

api_router.include_router(device_endpoints.router, prefix="/devices", tags=["devices"])
api_router.include_router(push_endpoints.router, prefix="/push", tags=["push"])
