"""Admission rules shared by events and study groups."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from app.domain.identity.models import AcademicProfile


@dataclass(frozen=True, slots=True)
class AdmissionRules:
	campus: Optional[str] = None
	careers: Tuple[str, ...] = ()
	min_semester: Optional[int] = None

	@classmethod
	def build(
		cls,
		*,
		campus: Optional[str] = None,
		careers: Iterable[str] = (),
		min_semester: Optional[int] = None,
	) -> "AdmissionRules":
		return cls(
			campus=(campus or "").strip() or None,
			careers=tuple(c.strip() for c in careers if c and c.strip()),
			min_semester=min_semester,
		)

	@property
	def is_open(self) -> bool:
		return self.campus is None and not self.careers and self.min_semester is None

	def to_dict(self) -> Dict[str, Any]:
		return {"campus": self.campus, "careers": list(self.careers), "min_semester": self.min_semester}

	@classmethod
	def from_dict(cls, data: Mapping[str, Any] | None) -> "AdmissionRules":
		data = data or {}
		return cls.build(
			campus=data.get("campus"),
			careers=data.get("careers") or (),
			min_semester=data.get("min_semester"),
		)


def admits(rules: AdmissionRules, profile: Optional[AcademicProfile]) -> bool:
	if profile is None:
		return rules.is_open
	if rules.campus is not None and profile.campus != rules.campus:
		return False
	if rules.careers and profile.career not in rules.careers:
		return False
	if rules.min_semester is not None and profile.semester < rules.min_semester:
		return False
	return True


def has_capacity(current: int, maximum: Optional[int]) -> bool:
	return maximum is None or current < maximum
