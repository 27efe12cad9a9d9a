"""Domain models for study groups."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from app.domain.common.admission import AdmissionRules
from app.infra.postgres import decode_json

DEFAULT_MAX_MEMBERS = 10


class StudyGroupStatus(str, Enum):
	ACTIVE = "active"
	COMPLETED = "completed"
	CANCELLED = "cancelled"


@dataclass(frozen=True, slots=True)
class StudyGroup:
	id: str
	creator_id: str
	name: str
	subject: str
	campus: str
	description: str = ""
	career: Optional[str] = None
	semester: Optional[int] = None
	max_members: int = DEFAULT_MAX_MEMBERS
	current_members: int = 1
	schedule: Dict[str, Any] = field(default_factory=dict)
	is_private: bool = False
	rules: AdmissionRules = AdmissionRules()
	status: StudyGroupStatus = StudyGroupStatus.ACTIVE
	created_at: Optional[datetime] = None
	updated_at: Optional[datetime] = None

	@property
	def is_active(self) -> bool:
		return self.status is StudyGroupStatus.ACTIVE

	@property
	def spots_left(self) -> int:
		return max(0, self.max_members - self.current_members)

	@classmethod
	def from_record(cls, record: Mapping[str, Any]) -> "StudyGroup":
		return cls(
			id=str(record["id"]),
			creator_id=str(record["creator_id"]),
			name=record["name"],
			subject=record["subject"],
			campus=record["campus"],
			description=record["description"] or "",
			career=record["career"],
			semester=record["semester"],
			max_members=int(record["max_members"]),
			current_members=int(record["current_members"]),
			schedule=decode_json(record["schedule"], {}),
			is_private=bool(record["is_private"]),
			rules=AdmissionRules.from_dict(decode_json(record["requirements"], {})),
			status=StudyGroupStatus(record["status"]),
			created_at=record["created_at"],
			updated_at=record["updated_at"],
		)


@dataclass(frozen=True, slots=True)
class SubjectCount:
	subject: str
	groups: int
