"""Study group workflows: create, browse, search, join, leave and cancel."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional, Tuple
from uuid import uuid4

from app.domain.common.admission import AdmissionRules, admits, has_capacity
from app.domain.common.errors import (
	DomainError,
	GroupFull,
	InvalidState,
	NotEligible,
	StudyGroupNotFound,
	Unauthorized,
	UserNotFound,
	ValidationFailed,
)
from app.domain.identity.models import User
from app.domain.identity.repo import UserRepository
from app.domain.notifications import NotificationService
from app.domain.study_groups.models import StudyGroup, StudyGroupStatus, SubjectCount
from app.domain.study_groups.repo import StudyGroupRepository
from app.domain.study_groups.schemas import StudyGroupCreateRequest
from app.infra import background
from app.infra.auth import AuthenticatedUser
from app.obs import metrics as obs_metrics

_LOG = logging.getLogger(__name__)


def _now() -> datetime:
	return datetime.now(timezone.utc)


class StudyGroupService:
	def __init__(
		self,
		repository: Optional[StudyGroupRepository] = None,
		users: Optional[UserRepository] = None,
		notifications: Optional[NotificationService] = None,
	) -> None:
		self._repo = repository or StudyGroupRepository()
		self._users = users or UserRepository()
		self._notifications = notifications or NotificationService()

	async def _get(self, group_id: str) -> StudyGroup:
		group = await self._repo.get(group_id)
		if group is None:
			raise StudyGroupNotFound()
		return group

	async def _user(self, user_id: str) -> User:
		user = await self._users.get(user_id)
		if user is None:
			raise UserNotFound()
		return user

	async def create_group(self, auth_user: AuthenticatedUser, payload: StudyGroupCreateRequest) -> StudyGroup:
		creator = await self._user(str(auth_user.id))
		profile = creator.academic_profile
		if profile is None or not profile.campus:
			raise ValidationFailed("academic_profile_required")
		now = _now()
		reqs = payload.requirements
		group = StudyGroup(
			id=str(uuid4()),
			creator_id=creator.id,
			name=payload.name.strip(),
			subject=payload.subject.strip(),
			campus=profile.campus,
			description=payload.description.strip(),
			career=(payload.career or "").strip() or profile.career,
			semester=payload.semester if payload.semester is not None else profile.semester,
			max_members=payload.max_members,
			schedule=dict(payload.schedule),
			is_private=payload.is_private,
			rules=AdmissionRules.build(
				campus=profile.campus if reqs.same_campus else None,
				careers=reqs.careers,
				min_semester=reqs.min_semester,
			),
			created_at=now,
			updated_at=now,
		)
		created = await self._repo.create(group, at=now)
		_LOG.info("study group created", extra={"group_id": created.id, "subject": created.subject})
		return created

	async def get_group(self, auth_user: AuthenticatedUser, group_id: str) -> Tuple[StudyGroup, bool]:
		group = await self._get(group_id)
		is_member = await self._repo.is_member(group.id, str(auth_user.id))
		if group.is_private and not is_member:
			raise Unauthorized("private_group")
		return group, is_member

	async def list_groups(
		self,
		*,
		campus: Optional[str] = None,
		career: Optional[str] = None,
		limit: int = 20,
		offset: int = 0,
	) -> List[StudyGroup]:
		return await self._repo.list_active(campus=campus, career=career, limit=limit, offset=offset)

	async def search(self, text: str, *, campus: Optional[str] = None, limit: int = 20) -> List[StudyGroup]:
		text = text.strip()
		if not text:
			raise ValidationFailed("query_required")
		return await self._repo.search(text, campus=campus, limit=limit)

	async def popular_subjects(self, *, campus: Optional[str] = None, limit: int = 10) -> List[SubjectCount]:
		return await self._repo.popular_subjects(campus=campus, limit=limit)

	async def my_groups(self, auth_user: AuthenticatedUser) -> List[StudyGroup]:
		return await self._repo.list_for_member(str(auth_user.id))

	async def join_group(self, auth_user: AuthenticatedUser, group_id: str) -> StudyGroup:
		user_id = str(auth_user.id)
		group = await self._get(group_id)
		user = await self._user(user_id)
		try:
			if not group.is_active:
				raise InvalidState("group_not_active")
			if not has_capacity(group.current_members, group.max_members):
				raise GroupFull("group_full")
			if not admits(group.rules, user.academic_profile):
				raise NotEligible("requirements_not_met")
			joined = await self._repo.add_member(group.id, user_id, at=_now())
		except DomainError as exc:
			obs_metrics.inc_group_join("study_group", exc.reason)
			raise
		obs_metrics.inc_group_join("study_group", "ok")
		if joined.creator_id != user_id:
			background.spawn(
				self._notifications.notify_group_join(joined.creator_id, user.first_name, joined.id, joined.name),
				name="notify_group_join",
			)
		return joined

	async def leave_group(self, auth_user: AuthenticatedUser, group_id: str) -> StudyGroup:
		user_id = str(auth_user.id)
		group = await self._get(group_id)
		if group.creator_id == user_id:
			raise InvalidState("creator_cannot_leave")
		left = await self._repo.remove_member(group.id, user_id, at=_now())
		if left is None:
			raise InvalidState("not_member")
		return left

	async def cancel_group(self, auth_user: AuthenticatedUser, group_id: str) -> StudyGroup:
		group = await self._get(group_id)
		if group.creator_id != str(auth_user.id):
			raise Unauthorized("not_creator")
		if group.status is StudyGroupStatus.COMPLETED:
			raise InvalidState("group_completed")
		if group.status is StudyGroupStatus.CANCELLED:
			return group
		cancelled = await self._repo.set_status(group.id, StudyGroupStatus.CANCELLED, at=_now())
		if cancelled is None:
			raise StudyGroupNotFound()
		for member_id in await self._repo.members(group.id):
			if member_id == group.creator_id:
				continue
			background.spawn(
				self._notifications.notify_group_cancelled(member_id, group.id, group.name),
				name="notify_group_cancelled",
			)
		_LOG.info("study group cancelled", extra={"group_id": group.id})
		return cancelled

	async def members(self, auth_user: AuthenticatedUser, group_id: str) -> Tuple[StudyGroup, List[User]]:
		"""Members in join order; private groups show them to members only."""
		group = await self._get(group_id)
		member_ids = await self._repo.members(group.id)
		if group.is_private and str(auth_user.id) not in member_ids:
			raise Unauthorized("private_group")
		users = await self._users.get_many(member_ids)
		return group, [users[uid] for uid in member_ids if uid in users]
