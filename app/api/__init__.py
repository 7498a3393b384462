from fastapi import APIRouter

from app.api.routers.admin import router as admin_router
from app.api.routers.auth import router as auth_router

router = APIRouter()

router.include_router(auth_router)
router.include_router(admin_router)
