"""Profile endpoints for the signed-in user."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from app.domain.identity import schemas
from app.domain.identity.service import IdentityService
from app.infra.auth import AuthenticatedUser, get_admin_user, get_current_user

router = APIRouter(prefix="/users", tags=["users"])
_service = IdentityService()


@router.get("/me", response_model=schemas.UserResponse)
async def get_me(auth_user: AuthenticatedUser = Depends(get_current_user)) -> schemas.UserResponse:
	return schemas.UserResponse.from_model(await _service.get_me(auth_user))


@router.patch("/me", response_model=schemas.UserResponse)
async def update_me(
	payload: schemas.ProfileUpdateRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> schemas.UserResponse:
	return schemas.UserResponse.from_model(await _service.update_profile(auth_user, payload))


@router.patch("/me/academic-profile", response_model=schemas.UserResponse)
async def update_academic_profile(
	payload: schemas.AcademicProfileUpdateRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> schemas.UserResponse:
	return schemas.UserResponse.from_model(await _service.update_academic_profile(auth_user, payload))


@router.post("/me/photos", response_model=schemas.UserResponse, status_code=status.HTTP_201_CREATED)
async def add_photo(
	payload: schemas.PhotoUploadRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> schemas.UserResponse:
	return schemas.UserResponse.from_model(await _service.add_photo(auth_user, payload))


@router.get("/{user_id}", response_model=schemas.UserSummary)
async def get_user(
	user_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> schemas.UserSummary:
	return schemas.UserSummary.from_model(await _service.get_user(user_id))


@router.post("/{user_id}/verify-email", response_model=schemas.UserResponse)
async def verify_email(
	user_id: str,
	admin: AuthenticatedUser = Depends(get_admin_user),
) -> schemas.UserResponse:
	return schemas.UserResponse.from_model(await _service.verify_email(user_id))
