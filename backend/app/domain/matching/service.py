"""Matching workflows: swipes, candidate feed, closing matches and statistics."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional

from app.domain.chat.repo import MessageRepository
from app.domain.common.errors import MatchNotFound, NotEligible, UserNotFound
from app.domain.identity.eligibility import missing_requirements
from app.domain.identity.models import AcademicProfile, User
from app.domain.identity.repo import UserRepository
from app.domain.matching import scoring, transitions
from app.domain.matching.models import Match, MatchStats, MatchStatus, PairKey, SwipeAction
from app.domain.matching.ranking import Candidate, rank_candidates
from app.domain.matching.repo import MatchRepository
from app.domain.notifications import NotificationService
from app.infra import background, rate_limit
from app.infra.auth import AuthenticatedUser
from app.obs import metrics as obs_metrics
from app.settings import settings

_LOG = logging.getLogger(__name__)


def _now() -> datetime:
	return datetime.now(timezone.utc)


def _eligible_profile(user: User, *, role: str) -> AcademicProfile:
	missing = missing_requirements(user)
	profile = user.academic_profile
	if missing or profile is None:
		raise NotEligible(f"{role}_not_eligible", missing=missing or ["academic_profile"])
	return profile


class MatchService:
	def __init__(
		self,
		repository: Optional[MatchRepository] = None,
		users: Optional[UserRepository] = None,
		messages: Optional[MessageRepository] = None,
		notifications: Optional[NotificationService] = None,
	) -> None:
		self._repo = repository or MatchRepository()
		self._users = users or UserRepository()
		self._messages = messages or MessageRepository()
		self._notifications = notifications or NotificationService()

	async def record_action(
		self,
		auth_user: AuthenticatedUser,
		target_user_id: str,
		action: SwipeAction,
	) -> tuple[Match, bool]:
		"""Record a swipe and return the match plus whether it just became mutual."""
		actor_id = str(auth_user.id)
		key = PairKey.from_participants(actor_id, target_user_id)
		await rate_limit.enforce("match_action", actor_id, limit=settings.match_actions_per_minute)
		users = await self._users.get_many(key.participants())
		actor = users.get(actor_id)
		target = users.get(str(target_user_id))
		if actor is None or target is None:
			raise UserNotFound()
		actor_profile = _eligible_profile(actor, role="actor")
		target_profile = _eligible_profile(target, role="target")
		score = scoring.compatibility(actor_profile, target_profile)
		now = _now()
		match = await self._repo.apply(
			key,
			compatibility=score,
			now=now,
			change=lambda current: transitions.apply_action(current, actor_id, action, now=now),
		)
		became_match = match.status is MatchStatus.MATCHED and match.matched_at == now
		obs_metrics.inc_match_action(action.value)
		if became_match:
			obs_metrics.inc_match_created()
			_LOG.info("match created", extra={"match_id": match.id, "compatibility": match.compatibility})
			background.spawn(
				self._notifications.notify_match(match.id, match.user_a, match.user_b),
				name="notify_match",
			)
		return match, became_match

	async def potential_matches(self, auth_user: AuthenticatedUser, *, limit: Optional[int] = None) -> List[Candidate]:
		user = await self._users.get(auth_user.id)
		if user is None:
			raise UserNotFound()
		profile = _eligible_profile(user, role="requester")
		limit = settings.candidate_default_limit if limit is None else min(limit, settings.candidate_max_limit)
		exclude = await self._repo.interacted_with(user.id)
		exclude.add(user.id)
		pool = await self._users.list_candidates(profile.campus, exclude=exclude, limit=settings.candidate_pool_size)
		return rank_candidates(profile, pool, exclude=exclude, limit=limit)

	async def _close(self, auth_user: AuthenticatedUser, match_id: str, closer) -> Match:
		actor_id = str(auth_user.id)
		now = _now()
		before: Dict[str, MatchStatus] = {}

		def change(current: Match) -> Match:
			before["status"] = current.status
			return closer(current, actor_id, now=now)

		match = await self._repo.update(match_id, change)
		if match is None:
			raise MatchNotFound()
		if before.get("status") is not match.status:
			obs_metrics.inc_match_closed(match.status.value)
			_LOG.info("match closed", extra={"match_id": match.id, "status": match.status.value})
		return match

	async def unmatch(self, auth_user: AuthenticatedUser, match_id: str) -> Match:
		return await self._close(auth_user, match_id, transitions.unmatch)

	async def block(self, auth_user: AuthenticatedUser, match_id: str) -> Match:
		return await self._close(auth_user, match_id, transitions.block)

	async def get_match(self, auth_user: AuthenticatedUser, match_id: str) -> Match:
		match = await self._repo.get(match_id)
		if match is None or not match.is_participant(auth_user.id):
			raise MatchNotFound()
		return match

	async def list_matches(self, auth_user: AuthenticatedUser) -> List[Match]:
		"""Matched pairs of the caller, most recently matched first."""
		matches = await self._repo.list_for_user(auth_user.id, statuses=[MatchStatus.MATCHED])
		return sorted(matches, key=lambda m: m.matched_at or m.created_at, reverse=True)

	async def pending_likes(self, auth_user: AuthenticatedUser) -> List[Match]:
		"""Pending matches where the other user liked the caller and the caller has not answered."""
		user_id = str(auth_user.id)
		pending = await self._repo.list_for_user(user_id, statuses=[MatchStatus.PENDING])
		return [
			match
			for match in pending
			if match.action_of(user_id) is SwipeAction.NONE
			and match.action_of(match.counterpart(user_id) or "").is_positive
		]

	async def statistics(self, auth_user: AuthenticatedUser) -> MatchStats:
		user_id = str(auth_user.id)
		matches = await self._repo.list_for_user(user_id)
		matched_ids = [m.id for m in matches if m.status is MatchStatus.MATCHED]
		return MatchStats(
			likes_sent=sum(1 for m in matches if m.action_of(user_id).is_positive),
			likes_received=sum(1 for m in matches if m.action_of(m.counterpart(user_id) or "").is_positive),
			matches=len(matched_ids),
			conversations=await self._messages.count_conversations(matched_ids),
		)

	async def summaries_for(self, matches: List[Match], viewer_id: str) -> Dict[str, User]:
		other_ids = [m.counterpart(viewer_id) for m in matches]
		return await self._users.get_many(uid for uid in other_ids if uid)
