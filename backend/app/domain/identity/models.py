"""Identity domain models: users, academic profiles and photos."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from app.infra.postgres import decode_json

MIN_SEMESTER = 1
MAX_SEMESTER = 12


def normalise_interests(values: Iterable[str]) -> Tuple[str, ...]:
	"""Strip, drop blanks and de-duplicate case-insensitively, keeping first spelling."""
	seen: set[str] = set()
	result: list[str] = []
	for raw in values:
		tag = str(raw).strip()
		key = tag.casefold()
		if not tag or key in seen:
			continue
		seen.add(key)
		result.append(tag)
	return tuple(result)


@dataclass(frozen=True, slots=True)
class AcademicProfile:
	user_id: str
	career: str
	campus: str
	semester: int
	interests: Tuple[str, ...] = ()
	student_id: Optional[str] = None
	university: str = ""

	@classmethod
	def from_record(cls, record: Mapping[str, Any]) -> "AcademicProfile":
		return cls(
			user_id=str(record["user_id"]),
			career=str(record["career"]),
			campus=str(record["campus"]),
			semester=int(record["semester"]),
			interests=tuple(decode_json(record.get("interests"), [])),
			student_id=record.get("student_id"),
			university=str(record.get("university") or ""),
		)


@dataclass(frozen=True, slots=True)
class PhotoDescriptor:
	photo_id: str
	url: str
	storage_key: str
	is_main: bool = False
	uploaded_at: Optional[datetime] = None

	def to_dict(self) -> Dict[str, Any]:
		return {
			"id": self.photo_id,
			"url": self.url,
			"key": self.storage_key,
			"is_main": self.is_main,
			"uploaded_at": self.uploaded_at.isoformat() if self.uploaded_at else None,
		}

	@classmethod
	def from_dict(cls, data: Mapping[str, Any]) -> "PhotoDescriptor":
		uploaded = data.get("uploaded_at")
		return cls(
			photo_id=str(data["id"]),
			url=str(data["url"]),
			storage_key=str(data.get("key") or ""),
			is_main=bool(data.get("is_main", False)),
			uploaded_at=datetime.fromisoformat(uploaded) if uploaded else None,
		)


@dataclass(frozen=True, slots=True)
class User:
	id: str
	email: str
	first_name: str
	last_name: str
	password_hash: str = ""
	bio: str = ""
	date_of_birth: Optional[date] = None
	photos: Tuple[PhotoDescriptor, ...] = ()
	academic_profile: Optional[AcademicProfile] = None
	email_verified: bool = False
	profile_complete: bool = False
	is_active: bool = True
	created_at: Optional[datetime] = None
	updated_at: Optional[datetime] = None

	@property
	def full_name(self) -> str:
		return f"{self.first_name} {self.last_name}".strip()

	@property
	def main_photo(self) -> Optional[PhotoDescriptor]:
		for photo in self.photos:
			if photo.is_main:
				return photo
		return self.photos[0] if self.photos else None

	@classmethod
	def from_record(cls, record: Mapping[str, Any]) -> "User":
		profile = None
		if record.get("career") is not None:
			profile = AcademicProfile.from_record(
				{
					"user_id": record["id"],
					"career": record["career"],
					"campus": record["campus"],
					"semester": record["semester"],
					"interests": record.get("interests"),
					"student_id": record.get("student_id"),
					"university": record.get("university"),
				}
			)
		return cls(
			id=str(record["id"]),
			email=str(record["email"]),
			first_name=str(record["first_name"]),
			last_name=str(record["last_name"]),
			password_hash=str(record.get("password_hash") or ""),
			bio=str(record.get("bio") or ""),
			date_of_birth=record.get("date_of_birth"),
			photos=tuple(PhotoDescriptor.from_dict(item) for item in decode_json(record.get("photos"), [])),
			academic_profile=profile,
			email_verified=bool(record.get("email_verified")),
			profile_complete=bool(record.get("profile_complete")),
			is_active=bool(record.get("is_active", True)),
			created_at=record.get("created_at"),
			updated_at=record.get("updated_at"),
		)
