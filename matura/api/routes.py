from fastapi import APIRouter
from matura.api.routes_apps import router as apps_router
from matura.api.routes_crud import router as crud_router
from matura.api.routes_generate import router as generate_router
from matura.api.routes_health import router as health_router
from matura.api.routes_jobs import router as jobs_router

router = APIRouter()
router.include_router(health_router, tags=["health"])
router.include_router(generate_router, tags=["generate"])
router.include_router(crud_router, tags=["crud"])
router.include_router(apps_router, tags=["apps"])
router.include_router(jobs_router, tags=["jobs"])
