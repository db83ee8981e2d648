"""API v1 Router — Query and health endpoints."""

from __future__ import annotations

from fastapi import APIRouter

from locindex.api.v1.endpoints.health import router as health_router
from locindex.api.v1.endpoints.query import router as query_router

router = APIRouter(tags=["v1"])
router.include_router(query_router)
router.include_router(health_router)
