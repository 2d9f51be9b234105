"""
Tribeworks API Routers
FastAPI router modules for the bounty and grant lifecycle.
"""
from backend.api import applications, bounties, cron, health, organizations

__all__ = [
    "applications",
    "bounties",
    "cron",
    "health",
    "organizations",
]
