from fastapi import APIRouter

from app.api.v1.endpoints import (
    payments,
    portone,
)

api_router = APIRouter()

# Include routers from endpoints
api_router.include_router(payments.router, prefix="/payments", tags=["payments"])
api_router.include_router(portone.router, prefix="/portone", tags=["portone"])
