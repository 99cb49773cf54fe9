from fastapi import APIRouter

from app.api.v1.endpoints.health import router as health_router
from app.api.v1.endpoints.messages import router as messages_router
from app.api.v1.endpoints.oauth import router as oauth_router


router = APIRouter(prefix="/v1")
router.include_router(health_router, tags=["health"])
router.include_router(oauth_router, tags=["oauth"])
router.include_router(messages_router, tags=["messages"])
