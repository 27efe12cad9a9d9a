"""Matching endpoints: candidates, swipes and match management."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from app.domain.identity.schemas import UserSummary
from app.domain.matching import schemas
from app.domain.matching.models import Match
from app.domain.matching.service import MatchService
from app.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(prefix="/matches", tags=["matches"])
_service = MatchService()


async def _with_summaries(matches: List[Match], viewer_id: str) -> schemas.MatchListResponse:
	users = await _service.summaries_for(matches, viewer_id)
	items = []
	for match in matches:
		other = users.get(match.counterpart(viewer_id) or "")
		items.append(
			schemas.MatchResponse.from_model(
				match,
				viewer_id,
				other_user=UserSummary.from_model(other) if other else None,
			)
		)
	return schemas.MatchListResponse(items=items)


@router.get("/candidates", response_model=List[schemas.CandidateResponse])
async def potential_matches(
	limit: Optional[int] = Query(default=None, ge=1, le=100),
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> List[schemas.CandidateResponse]:
	candidates = await _service.potential_matches(auth_user, limit=limit)
	return [schemas.CandidateResponse.from_model(candidate) for candidate in candidates]


@router.post("/swipe", response_model=schemas.SwipeResponse)
async def swipe(
	payload: schemas.SwipeRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> schemas.SwipeResponse:
	match, is_new = await _service.record_action(auth_user, payload.target_user_id, payload.action)
	return schemas.SwipeResponse(match=schemas.MatchResponse.from_model(match, auth_user.id), is_new_match=is_new)


@router.get("", response_model=schemas.MatchListResponse)
async def list_matches(auth_user: AuthenticatedUser = Depends(get_current_user)) -> schemas.MatchListResponse:
	return await _with_summaries(await _service.list_matches(auth_user), auth_user.id)


@router.get("/likes", response_model=schemas.MatchListResponse)
async def pending_likes(auth_user: AuthenticatedUser = Depends(get_current_user)) -> schemas.MatchListResponse:
	return await _with_summaries(await _service.pending_likes(auth_user), auth_user.id)


@router.get("/stats", response_model=schemas.MatchStatsResponse)
async def statistics(auth_user: AuthenticatedUser = Depends(get_current_user)) -> schemas.MatchStatsResponse:
	return schemas.MatchStatsResponse.from_model(await _service.statistics(auth_user))


@router.get("/{match_id}", response_model=schemas.MatchResponse)
async def get_match(
	match_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> schemas.MatchResponse:
	match = await _service.get_match(auth_user, match_id)
	return schemas.MatchResponse.from_model(match, auth_user.id)


@router.post("/{match_id}/unmatch", response_model=schemas.MatchResponse)
async def unmatch(
	match_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> schemas.MatchResponse:
	match = await _service.unmatch(auth_user, match_id)
	return schemas.MatchResponse.from_model(match, auth_user.id)


@router.post("/{match_id}/block", response_model=schemas.MatchResponse)
async def block(
	match_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> schemas.MatchResponse:
	match = await _service.block(auth_user, match_id)
	return schemas.MatchResponse.from_model(match, auth_user.id)
