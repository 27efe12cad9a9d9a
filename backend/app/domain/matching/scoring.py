"""Compatibility scoring between two academic profiles.

The score is an integer in 0..100 built from four components:

* career: 40 for the same career, 20 for a related one;
* campus: 30 for the same campus;
* semester proximity: ``0.2 * max(0, 100 - 10 * |s1 - s2|)``, i.e. 20 for the
  same semester and nothing once ten or more semesters apart;
* shared interests: 5 per tag in common (case-insensitive), at most 25.

The sum is capped at 100 and rounded half-up.
"""

from __future__ import annotations

import math
from typing import Dict, FrozenSet

from app.domain.identity.models import AcademicProfile

CAREER_WEIGHT = 40
RELATED_CAREER_WEIGHT = 20
CAMPUS_WEIGHT = 30
SEMESTER_WEIGHT = 0.2
SEMESTER_STEP_PENALTY = 10
INTEREST_POINTS = 5
INTEREST_CAP = 25
MAX_SCORE = 100

RELATED_CAREERS: Dict[str, FrozenSet[str]] = {
	"Ingeniería en Desarrollo de Software": frozenset({"Ingeniería en Sistemas Informáticos"}),
	"Ingeniería en Sistemas Informáticos": frozenset({"Ingeniería en Desarrollo de Software"}),
	"Ingeniería Industrial": frozenset({"Ingeniería Electromecánica"}),
	"Ingeniería Electromecánica": frozenset({"Ingeniería Industrial", "Ingeniería en Energías Renovables"}),
	"Licenciatura en Administración y Gestión": frozenset({"Licenciatura en Contaduría Pública"}),
	"Licenciatura en Contaduría Pública": frozenset({"Licenciatura en Administración y Gestión"}),
}


def careers_related(first: str, second: str) -> bool:
	return second in RELATED_CAREERS.get(first, frozenset()) or first in RELATED_CAREERS.get(second, frozenset())


def career_points(first: str, second: str) -> int:
	if first == second:
		return CAREER_WEIGHT
	if careers_related(first, second):
		return RELATED_CAREER_WEIGHT
	return 0


def semester_points(first: int, second: int) -> float:
	return SEMESTER_WEIGHT * max(0, 100 - SEMESTER_STEP_PENALTY * abs(first - second))


def shared_interests(first: AcademicProfile, second: AcademicProfile) -> FrozenSet[str]:
	left = {tag.strip().casefold() for tag in first.interests if tag.strip()}
	right = {tag.strip().casefold() for tag in second.interests if tag.strip()}
	return frozenset(left & right)


def interest_points(first: AcademicProfile, second: AcademicProfile) -> int:
	return min(INTEREST_CAP, INTEREST_POINTS * len(shared_interests(first, second)))


def compatibility(first: AcademicProfile, second: AcademicProfile) -> int:
	total = float(career_points(first.career, second.career))
	if first.campus == second.campus:
		total += CAMPUS_WEIGHT
	total += semester_points(first.semester, second.semester)
	total += interest_points(first, second)
	return int(math.floor(min(total, MAX_SCORE) + 0.5))
