"""Institutional email parsing.

Student addresses take the form ``<student_id>@<career_code>.<domain>``; the
career code subdomain identifies the degree programme.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from app.domain.common.errors import ValidationFailed

CAREER_CODES = {
	"ids": "Ingeniería en Desarrollo de Software",
	"isi": "Ingeniería en Sistemas Informáticos",
	"iin": "Ingeniería Industrial",
	"ial": "Ingeniería en Alimentos",
	"iem": "Ingeniería Electromecánica",
	"igeo": "Ingeniería en Geomática",
	"ienr": "Ingeniería en Energías Renovables",
	"lag": "Licenciatura en Administración y Gestión",
	"lcp": "Licenciatura en Contaduría Pública",
	"lgn": "Licenciatura en Gastronomía",
	"ltu": "Licenciatura en Turismo",
}

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def career_for_code(code: str) -> str:
	return CAREER_CODES.get(code.lower(), f"Carrera {code.upper()}")


@dataclass(frozen=True, slots=True)
class UniversityEmail:
	value: str
	student_id: str
	career_code: str

	@property
	def career(self) -> str:
		return career_for_code(self.career_code)

	@classmethod
	def parse(cls, raw: str, *, domain: str) -> "UniversityEmail":
		value = (raw or "").strip().lower()
		if not _EMAIL_RE.match(value):
			raise ValidationFailed("email_invalid")
		pattern = re.compile(r"^(?P<student>[^@\s]+)@(?P<career>[a-z]+)\." + re.escape(domain.lower()) + r"$")
		match = pattern.match(value)
		if match is None:
			raise ValidationFailed("email_not_institutional")
		return cls(value=value, student_id=match.group("student"), career_code=match.group("career"))
