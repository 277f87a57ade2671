"""Health check endpoints."""

from __future__ import annotations

from fastapi import APIRouter

from qmsguard.api.dependencies import ServicesDep

router = APIRouter(tags=["health"])


@router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "healthy"}


@router.get("/ready")
async def ready(services: ServicesDep) -> dict[str, str]:
    return {
        "status": "ready",
        "store": type(services.persistence.store).__name__,
        "notifier": type(services.notifier).__name__,
    }
