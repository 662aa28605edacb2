"""
API Router
Combines all endpoint routers
"""
from fastapi import APIRouter
from app.api.v1.endpoints import (
    auto_call,
    webhooks,
)

api_router = APIRouter()

api_router.include_router(auto_call.router)
api_router.include_router(webhooks.router)
