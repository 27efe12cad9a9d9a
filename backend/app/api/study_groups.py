"""Study group endpoints."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from app.domain.study_groups import schemas
from app.domain.study_groups.service import StudyGroupService
from app.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(prefix="/study-groups", tags=["study-groups"])
_service = StudyGroupService()


@router.post("", response_model=schemas.StudyGroupResponse, status_code=status.HTTP_201_CREATED)
async def create_group(
	payload: schemas.StudyGroupCreateRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> schemas.StudyGroupResponse:
	group = await _service.create_group(auth_user, payload)
	return schemas.StudyGroupResponse.from_model(group, is_member=True)


@router.get("", response_model=List[schemas.StudyGroupResponse])
async def list_groups(
	campus: Optional[str] = None,
	career: Optional[str] = None,
	limit: int = Query(default=20, ge=1, le=100),
	offset: int = Query(default=0, ge=0),
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> List[schemas.StudyGroupResponse]:
	groups = await _service.list_groups(
		campus=campus or auth_user.campus_id,
		career=career,
		limit=limit,
		offset=offset,
	)
	return [schemas.StudyGroupResponse.from_model(group) for group in groups]


@router.get("/search", response_model=List[schemas.StudyGroupResponse])
async def search_groups(
	q: str = Query(..., min_length=1, max_length=100),
	campus: Optional[str] = None,
	limit: int = Query(default=20, ge=1, le=100),
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> List[schemas.StudyGroupResponse]:
	groups = await _service.search(q, campus=campus, limit=limit)
	return [schemas.StudyGroupResponse.from_model(group) for group in groups]


@router.get("/subjects/popular", response_model=List[schemas.SubjectCountResponse])
async def popular_subjects(
	campus: Optional[str] = None,
	limit: int = Query(default=10, ge=1, le=50),
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> List[schemas.SubjectCountResponse]:
	subjects = await _service.popular_subjects(campus=campus, limit=limit)
	return [schemas.SubjectCountResponse.from_model(item) for item in subjects]


@router.get("/mine", response_model=List[schemas.StudyGroupResponse])
async def my_groups(auth_user: AuthenticatedUser = Depends(get_current_user)) -> List[schemas.StudyGroupResponse]:
	groups = await _service.my_groups(auth_user)
	return [schemas.StudyGroupResponse.from_model(group, is_member=True) for group in groups]


@router.get("/{group_id}", response_model=schemas.StudyGroupResponse)
async def get_group(
	group_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> schemas.StudyGroupResponse:
	group, is_member = await _service.get_group(auth_user, group_id)
	return schemas.StudyGroupResponse.from_model(group, is_member=is_member)


@router.get("/{group_id}/members", response_model=List[schemas.MemberResponse])
async def list_members(
	group_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> List[schemas.MemberResponse]:
	group, users = await _service.members(auth_user, group_id)
	return [
		schemas.MemberResponse(
			user_id=user.id,
			first_name=user.first_name,
			last_name=user.last_name,
			career=user.academic_profile.career if user.academic_profile else None,
			semester=user.academic_profile.semester if user.academic_profile else None,
			is_creator=user.id == group.creator_id,
		)
		for user in users
	]


@router.post("/{group_id}/join", response_model=schemas.StudyGroupResponse)
async def join_group(
	group_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> schemas.StudyGroupResponse:
	group = await _service.join_group(auth_user, group_id)
	return schemas.StudyGroupResponse.from_model(group, is_member=True)


@router.post("/{group_id}/leave", response_model=schemas.StudyGroupResponse)
async def leave_group(
	group_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> schemas.StudyGroupResponse:
	group = await _service.leave_group(auth_user, group_id)
	return schemas.StudyGroupResponse.from_model(group, is_member=False)


@router.post("/{group_id}/cancel", response_model=schemas.StudyGroupResponse)
async def cancel_group(
	group_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> schemas.StudyGroupResponse:
	group = await _service.cancel_group(auth_user, group_id)
	return schemas.StudyGroupResponse.from_model(group, is_member=True)
