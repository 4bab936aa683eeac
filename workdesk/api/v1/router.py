from fastapi import APIRouter

from workdesk.api.v1.endpoints import requests, tasks, users, teams, assignment_config, health

router = APIRouter(prefix="/api/v1")

router.include_router(requests.router)
router.include_router(tasks.router)
router.include_router(users.router)
router.include_router(teams.router)
router.include_router(assignment_config.router)
router.include_router(health.router)
