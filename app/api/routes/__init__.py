"""
API Routes
"""
from fastapi import APIRouter

from app.api.webhooks.pubsub import legacy_router as pubsub_legacy_router
from app.api.webhooks.pubsub import router as pubsub_router

router = APIRouter()

router.include_router(pubsub_router, prefix="/pubsub", tags=["webhooks"])

# Backwards-compatible push endpoint
router.include_router(pubsub_legacy_router, prefix="/v1/customer", tags=["webhooks"])
