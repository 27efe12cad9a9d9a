"""Pydantic schemas for registration and profile endpoints."""

from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from .eligibility import missing_requirements
from .models import AcademicProfile, MAX_SEMESTER, MIN_SEMESTER, PhotoDescriptor, User


class RegisterRequest(BaseModel):
	email: str = Field(..., examples=["213456@ids.upchiapas.edu.mx"])
	password: str = Field(..., min_length=8, max_length=128)
	first_name: str = Field(..., min_length=1, max_length=80)
	last_name: str = Field(..., min_length=1, max_length=80)
	campus: str = Field(..., min_length=1, max_length=120)
	semester: int = Field(..., ge=MIN_SEMESTER, le=MAX_SEMESTER)
	career: Optional[str] = Field(default=None, description="Overrides the career derived from the email")
	interests: List[str] = Field(default_factory=list, max_length=20)
	date_of_birth: Optional[date] = None
	bio: str = Field(default="", max_length=500)


class LoginRequest(BaseModel):
	email: str
	password: str


class TokenResponse(BaseModel):
	access_token: str
	token_type: str = "bearer"
	user_id: str


class ProfileUpdateRequest(BaseModel):
	first_name: Optional[str] = Field(default=None, min_length=1, max_length=80)
	last_name: Optional[str] = Field(default=None, min_length=1, max_length=80)
	bio: Optional[str] = Field(default=None, max_length=500)
	date_of_birth: Optional[date] = None


class AcademicProfileUpdateRequest(BaseModel):
	semester: Optional[int] = Field(default=None, ge=MIN_SEMESTER, le=MAX_SEMESTER)
	interests: Optional[List[str]] = Field(default=None, max_length=20)


class PhotoUploadRequest(BaseModel):
	mime: str = Field(..., examples=["image/jpeg"])
	bytes: int = Field(..., gt=0)


class AcademicProfileResponse(BaseModel):
	student_id: Optional[str] = None
	career: str
	campus: str
	semester: int
	interests: List[str]
	university: str

	@classmethod
	def from_model(cls, profile: AcademicProfile) -> "AcademicProfileResponse":
		return cls(
			student_id=profile.student_id,
			career=profile.career,
			campus=profile.campus,
			semester=profile.semester,
			interests=list(profile.interests),
			university=profile.university,
		)


class PhotoResponse(BaseModel):
	id: str
	url: str
	key: str
	is_main: bool
	uploaded_at: Optional[datetime] = None

	@classmethod
	def from_model(cls, photo: PhotoDescriptor) -> "PhotoResponse":
		return cls(
			id=photo.photo_id,
			url=photo.url,
			key=photo.storage_key,
			is_main=photo.is_main,
			uploaded_at=photo.uploaded_at,
		)


class UserSummary(BaseModel):
	"""Public view of another user, as shown on candidate and match cards."""

	id: str
	first_name: str
	last_name: str
	bio: str
	photo_url: Optional[str] = None
	career: Optional[str] = None
	campus: Optional[str] = None
	semester: Optional[int] = None
	interests: List[str] = Field(default_factory=list)

	@classmethod
	def from_model(cls, user: User) -> "UserSummary":
		profile = user.academic_profile
		main = user.main_photo
		return cls(
			id=user.id,
			first_name=user.first_name,
			last_name=user.last_name,
			bio=user.bio,
			photo_url=main.url if main else None,
			career=profile.career if profile else None,
			campus=profile.campus if profile else None,
			semester=profile.semester if profile else None,
			interests=list(profile.interests) if profile else [],
		)


class UserResponse(BaseModel):
	id: str
	email: str
	first_name: str
	last_name: str
	bio: str
	date_of_birth: Optional[date] = None
	photos: List[PhotoResponse]
	academic_profile: Optional[AcademicProfileResponse] = None
	email_verified: bool
	profile_complete: bool
	is_active: bool
	eligible_for_matching: bool
	missing_requirements: List[str]
	created_at: Optional[datetime] = None

	@classmethod
	def from_model(cls, user: User) -> "UserResponse":
		missing = missing_requirements(user)
		return cls(
			id=user.id,
			email=user.email,
			first_name=user.first_name,
			last_name=user.last_name,
			bio=user.bio,
			date_of_birth=user.date_of_birth,
			photos=[PhotoResponse.from_model(photo) for photo in user.photos],
			academic_profile=AcademicProfileResponse.from_model(user.academic_profile) if user.academic_profile else None,
			email_verified=user.email_verified,
			profile_complete=user.profile_complete,
			is_active=user.is_active,
			eligible_for_matching=not missing,
			missing_requirements=missing,
			created_at=user.created_at,
		)
