"""
Top-level router for version 1 of the API.

This router aggregates the domain-specific routers under a unified
prefix.  Team-scoped routers are mounted below ``/teams/{team_id}``;
their access dependency reads ``team_id`` from that path.
"""

from fastapi import APIRouter

from .endpoints import (
    applications,
    audit,
    automation,
    flags,
    links,
    registrations,
    settings,
    teams,
    turnovers,
)

TEAM_PREFIX = "/teams/{team_id}"

router = APIRouter()

router.include_router(teams.router, prefix="/teams", tags=["teams"])
router.include_router(registrations.router, prefix="/registrations", tags=["registrations"])
router.include_router(applications.router, prefix=f"{TEAM_PREFIX}/applications", tags=["applications"])
router.include_router(
    applications.sub_applications_router, prefix=f"{TEAM_PREFIX}/sub-applications", tags=["applications"]
)
# The links router defines /links, /categories and /tags itself.
router.include_router(links.router, prefix=TEAM_PREFIX, tags=["links"])
router.include_router(turnovers.router, prefix=f"{TEAM_PREFIX}/turnovers", tags=["turnovers"])
router.include_router(flags.router, prefix=f"{TEAM_PREFIX}/flags", tags=["flags"])
router.include_router(automation.router, prefix=f"{TEAM_PREFIX}/automation", tags=["automation"])
router.include_router(automation.scheduler_router, prefix="/automation", tags=["automation"])
router.include_router(settings.router, prefix="/settings/tools", tags=["settings"])
router.include_router(settings.team_router, prefix=f"{TEAM_PREFIX}/settings/tools", tags=["settings"])
router.include_router(audit.router, prefix="/audit", tags=["audit"])
router.include_router(audit.team_router, prefix=f"{TEAM_PREFIX}/audit", tags=["audit"])
