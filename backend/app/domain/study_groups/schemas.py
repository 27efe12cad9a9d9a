"""Pydantic schemas for the study group API."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from .models import DEFAULT_MAX_MEMBERS, StudyGroup, StudyGroupStatus, SubjectCount


class StudyGroupRequirements(BaseModel):
	careers: List[str] = Field(default_factory=list)
	min_semester: Optional[int] = Field(default=None, ge=1, le=12)
	same_campus: bool = True


class StudyGroupCreateRequest(BaseModel):
	name: str = Field(..., min_length=3, max_length=120)
	description: str = Field(default="", max_length=2000)
	subject: str = Field(..., min_length=2, max_length=120)
	career: Optional[str] = None
	semester: Optional[int] = Field(default=None, ge=1, le=12)
	max_members: int = Field(default=DEFAULT_MAX_MEMBERS, ge=2, le=50)
	schedule: Dict[str, Any] = Field(default_factory=dict)
	is_private: bool = False
	requirements: StudyGroupRequirements = Field(default_factory=StudyGroupRequirements)


class StudyGroupResponse(BaseModel):
	id: str
	creator_id: str
	name: str
	description: str
	subject: str
	campus: str
	career: Optional[str] = None
	semester: Optional[int] = None
	max_members: int
	current_members: int
	spots_left: int
	schedule: Dict[str, Any]
	is_private: bool
	required_careers: List[str]
	min_semester: Optional[int] = None
	status: StudyGroupStatus
	is_member: Optional[bool] = None
	created_at: Optional[datetime] = None

	@classmethod
	def from_model(cls, group: StudyGroup, *, is_member: Optional[bool] = None) -> "StudyGroupResponse":
		return cls(
			id=group.id,
			creator_id=group.creator_id,
			name=group.name,
			description=group.description,
			subject=group.subject,
			campus=group.campus,
			career=group.career,
			semester=group.semester,
			max_members=group.max_members,
			current_members=group.current_members,
			spots_left=group.spots_left,
			schedule=dict(group.schedule),
			is_private=group.is_private,
			required_careers=list(group.rules.careers),
			min_semester=group.rules.min_semester,
			status=group.status,
			is_member=is_member,
			created_at=group.created_at,
		)


class SubjectCountResponse(BaseModel):
	subject: str
	groups: int

	@classmethod
	def from_model(cls, item: SubjectCount) -> "SubjectCountResponse":
		return cls(subject=item.subject, groups=item.groups)


class MemberResponse(BaseModel):
	user_id: str
	first_name: str
	last_name: str
	career: Optional[str] = None
	semester: Optional[int] = None
	is_creator: bool = False
