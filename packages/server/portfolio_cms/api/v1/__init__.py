"""
API router

Everything is served under /api (see `create_app`).
"""

from fastapi import APIRouter

from . import projects, system, translate

router = APIRouter()

router.include_router(system.router, tags=["System"])
router.include_router(projects.router, prefix="/projects", tags=["Projects"])
router.include_router(translate.router, prefix="/translate", tags=["Translation"])
