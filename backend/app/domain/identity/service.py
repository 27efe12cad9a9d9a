"""Registration, profile and photo workflows."""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Optional, Tuple
from uuid import uuid4

from app.domain.common.errors import Unauthorized, UserNotFound
from app.domain.identity import eligibility
from app.domain.identity.models import AcademicProfile, User, normalise_interests
from app.domain.identity.repo import UserRepository
from app.domain.identity.schemas import (
	AcademicProfileUpdateRequest,
	LoginRequest,
	PhotoUploadRequest,
	ProfileUpdateRequest,
	RegisterRequest,
)
from app.domain.identity.storage import PhotoStorage, UploadUrlStorage
from app.domain.identity.university_email import UniversityEmail
from app.infra.auth import AuthenticatedUser, issue_access_token
from app.infra.password import hash_password, verify_password
from app.settings import settings

_LOG = logging.getLogger(__name__)


def _now() -> datetime:
	return datetime.now(timezone.utc)


def _with_completion(user: User) -> User:
	return replace(user, profile_complete=eligibility.profile_is_complete(user))


class IdentityService:
	def __init__(
		self,
		repository: Optional[UserRepository] = None,
		storage: Optional[PhotoStorage] = None,
	) -> None:
		self._repo = repository or UserRepository()
		self._storage = storage or UploadUrlStorage()

	async def register(self, payload: RegisterRequest) -> User:
		email = UniversityEmail.parse(payload.email, domain=settings.university_email_domain)
		now = _now()
		user_id = str(uuid4())
		profile = AcademicProfile(
			user_id=user_id,
			career=(payload.career or "").strip() or email.career,
			campus=payload.campus.strip(),
			semester=payload.semester,
			interests=normalise_interests(payload.interests),
			student_id=email.student_id,
			university=settings.university_name,
		)
		user = User(
			id=user_id,
			email=email.value,
			first_name=payload.first_name.strip(),
			last_name=payload.last_name.strip(),
			password_hash=hash_password(payload.password),
			bio=payload.bio.strip(),
			date_of_birth=payload.date_of_birth,
			academic_profile=profile,
			created_at=now,
			updated_at=now,
		)
		created = await self._repo.create(_with_completion(user))
		_LOG.info("user registered", extra={"new_user_id": created.id, "career_code": email.career_code})
		return created

	async def login(self, payload: LoginRequest) -> Tuple[str, User]:
		"""Verify credentials and return an access token with the user."""
		user = await self._repo.find_by_email(payload.email)
		if user is None or not verify_password(user.password_hash, payload.password):
			raise Unauthorized("invalid_credentials")
		if not user.is_active:
			raise Unauthorized("account_inactive")
		campus = user.academic_profile.campus if user.academic_profile else None
		return issue_access_token(user.id, campus=campus), user

	async def get_user(self, user_id: str) -> User:
		user = await self._repo.get(user_id)
		if user is None:
			raise UserNotFound()
		return user

	async def get_me(self, auth_user: AuthenticatedUser) -> User:
		return await self.get_user(auth_user.id)

	async def _update(self, user_id: str, change) -> User:
		updated = await self._repo.update(user_id, change)
		if updated is None:
			raise UserNotFound()
		return updated

	async def update_profile(self, auth_user: AuthenticatedUser, payload: ProfileUpdateRequest) -> User:
		changes = payload.model_dump(exclude_unset=True)
		if "bio" in changes and changes["bio"] is not None:
			changes["bio"] = changes["bio"].strip()
		changes = {key: value for key, value in changes.items() if value is not None or key == "date_of_birth"}
		now = _now()
		return await self._update(
			auth_user.id,
			lambda user: _with_completion(replace(user, **changes, updated_at=now)),
		)

	async def update_academic_profile(
		self,
		auth_user: AuthenticatedUser,
		payload: AcademicProfileUpdateRequest,
	) -> User:
		now = _now()

		def change(user: User) -> User:
			profile = user.academic_profile
			if profile is None:
				raise UserNotFound("academic_profile_not_found")
			if payload.semester is not None:
				profile = replace(profile, semester=payload.semester)
			if payload.interests is not None:
				profile = replace(profile, interests=normalise_interests(payload.interests))
			return _with_completion(replace(user, academic_profile=profile, updated_at=now))

		return await self._update(auth_user.id, change)

	async def add_photo(self, auth_user: AuthenticatedUser, payload: PhotoUploadRequest) -> User:
		user = await self.get_user(auth_user.id)
		photo = await self._storage.store(user.id, mime=payload.mime, size_bytes=payload.bytes)
		now = _now()

		def change(current: User) -> User:
			added = photo if current.photos else replace(photo, is_main=True)
			return _with_completion(replace(current, photos=current.photos + (added,), updated_at=now))

		return await self._update(user.id, change)

	async def verify_email(self, user_id: str) -> User:
		now = _now()
		updated = await self._update(
			user_id,
			lambda user: user if user.email_verified else replace(user, email_verified=True, updated_at=now),
		)
		_LOG.info("email verified", extra={"target_user_id": user_id})
		return updated
