from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class Role(str, Enum):
    student = "student"
    professor = "professor"
    school = "school"
    admin = "admin"


class SignalKind(str, Enum):
    """Activity sources whose latest timestamp counts as account activity."""

    essay_submission = "essay_submission"
    task_creation = "task_creation"


# Roles whose activity is tracked; everything else is never classified.
PARTICIPATING_ROLES: frozenset[Role] = frozenset({Role.student, Role.professor})


def normalize_role(role: object) -> Role | None:
    """Map a stored role string onto ``Role``; unknown values yield ``None``."""
    try:
        return Role(str(role or "").strip().lower())
    except ValueError:
        return None


@dataclass(slots=True)
class Account:
    """Projection of a platform user carrying the inactivity lifecycle fields."""

    account_id: str
    email: str
    name: str
    role: str
    created_at: datetime | None
    email_opt_out: bool = False
    inactivity_warned_at: datetime | None = None
    scheduled_deletion_at: datetime | None = None

    @property
    def normalized_role(self) -> Role | None:
        return normalize_role(self.role)
