from fastapi import APIRouter
from buildtrack.api.routers import projects, phases, floors, costs, procurement

api_router = APIRouter()
api_router.include_router(projects.router, prefix="/projects", tags=["projects"])
api_router.include_router(phases.router, prefix="/phases", tags=["phases"])
api_router.include_router(floors.router, prefix="/floors", tags=["floors"])
api_router.include_router(costs.router, prefix="/costs", tags=["costs"])
api_router.include_router(procurement.router, prefix="/procurement", tags=["procurement"])
