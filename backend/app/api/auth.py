"""Registration and login endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Request, status

from app.domain.identity import schemas
from app.domain.identity.service import IdentityService
from app.infra import rate_limit
from app.settings import settings

router = APIRouter(prefix="/auth", tags=["auth"])
_service = IdentityService()


def _client_ip(request: Request) -> str:
	client = request.client
	return client.host if client else "unknown"


@router.post("/register", response_model=schemas.UserResponse, status_code=status.HTTP_201_CREATED)
async def register(payload: schemas.RegisterRequest, request: Request) -> schemas.UserResponse:
	await rate_limit.enforce("register", _client_ip(request), limit=settings.login_attempts_per_minute)
	user = await _service.register(payload)
	return schemas.UserResponse.from_model(user)


@router.post("/login", response_model=schemas.TokenResponse)
async def login(payload: schemas.LoginRequest, request: Request) -> schemas.TokenResponse:
	await rate_limit.enforce("login", _client_ip(request), limit=settings.login_attempts_per_minute)
	token, user = await _service.login(payload)
	return schemas.TokenResponse(access_token=token, user_id=user.id)
