"""Operations endpoints providing health checks and metrics."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Response, status
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from app.obs import health
from app.settings import settings

router = APIRouter(prefix="", tags=["ops"])


@router.get("/health")
async def health_live() -> JSONResponse:
	return JSONResponse(await health.liveness())


@router.get("/health/ready")
async def health_ready() -> JSONResponse:
	code, body = await health.readiness()
	return JSONResponse(body, status_code=code)


@router.get("/metrics")
async def metrics_endpoint() -> Response:
	if not settings.obs_metrics_public and settings.is_prod():
		raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="metrics_private")
	return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
