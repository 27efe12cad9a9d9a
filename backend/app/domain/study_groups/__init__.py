"""Study groups with capacity and admission rules."""

from .models import StudyGroup, StudyGroupStatus
from .service import StudyGroupService

__all__ = ["StudyGroup", "StudyGroupService", "StudyGroupStatus"]
