"""Task, Goal, User and DailyPlan records shared by every engine component."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any


class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    SKIPPED = "skipped"


class GoalStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class PlanStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    CONFIRMED = "confirmed"
    SKIPPED = "skipped"


def _ts(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _parse_ts(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _parse_date(value: str | None) -> date | None:
    return date.fromisoformat(value) if value else None


@dataclass(frozen=True)
class Tombstone:
    """Soft-delete marker. ``batch_id`` identifies the delete operation."""

    deleted_at: datetime
    batch_id: str

    def to_dict(self) -> dict[str, Any]:
        return {"deleted_at": self.deleted_at.isoformat(), "batch_id": self.batch_id}

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> Tombstone | None:
        if not data:
            return None
        return cls(deleted_at=datetime.fromisoformat(data["deleted_at"]), batch_id=data["batch_id"])


@dataclass
class Schedule:
    date: date
    start: str = ""
    duration_minutes: int = 30

    def to_dict(self) -> dict[str, Any]:
        return {"date": self.date.isoformat(), "start": self.start, "duration_minutes": self.duration_minutes}

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> Schedule | None:
        if not data:
            return None
        return cls(
            date=date.fromisoformat(data["date"]),
            start=data.get("start", ""),
            duration_minutes=data.get("duration_minutes", 30),
        )


@dataclass
class Task:
    id: str
    goal_id: str
    title: str = ""
    description: str = ""
    done_definition: str = ""
    status: TaskStatus = TaskStatus.PENDING
    estimated_minutes: int = 30
    depends_on: list[str] = field(default_factory=list)
    sort_order: int = 0
    schedule: Schedule | None = None
    parent_task_id: str | None = None
    completed_at: datetime | None = None
    created_at: datetime | None = None
    tombstone: Tombstone | None = None

    @property
    def is_deleted(self) -> bool:
        return self.tombstone is not None

    @property
    def deleted_at(self) -> datetime | None:
        return self.tombstone.deleted_at if self.tombstone else None

    @property
    def is_completed(self) -> bool:
        return self.status == TaskStatus.COMPLETED

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "goal_id": self.goal_id,
            "title": self.title,
            "description": self.description,
            "done_definition": self.done_definition,
            "status": self.status.value,
            "estimated_minutes": self.estimated_minutes,
            "depends_on": list(self.depends_on),
            "sort_order": self.sort_order,
            "schedule": self.schedule.to_dict() if self.schedule else None,
            "parent_task_id": self.parent_task_id,
            "completed_at": _ts(self.completed_at),
            "created_at": _ts(self.created_at),
            "tombstone": self.tombstone.to_dict() if self.tombstone else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Task:
        return cls(
            id=data["id"],
            goal_id=data["goal_id"],
            title=data.get("title", ""),
            description=data.get("description", ""),
            done_definition=data.get("done_definition", ""),
            status=TaskStatus(data.get("status", "pending")),
            estimated_minutes=data.get("estimated_minutes", 30),
            depends_on=list(data.get("depends_on") or []),
            sort_order=data.get("sort_order", 0),
            schedule=Schedule.from_dict(data.get("schedule")),
            parent_task_id=data.get("parent_task_id"),
            completed_at=_parse_ts(data.get("completed_at")),
            created_at=_parse_ts(data.get("created_at")),
            tombstone=Tombstone.from_dict(data.get("tombstone")),
        )


@dataclass
class Goal:
    id: str
    user_id: str
    title: str = ""
    status: GoalStatus = GoalStatus.ACTIVE
    progress: int = 0
    sort_order: int = 0
    completed_at: datetime | None = None
    created_at: datetime | None = None
    tombstone: Tombstone | None = None

    @property
    def is_deleted(self) -> bool:
        return self.tombstone is not None

    @property
    def deleted_at(self) -> datetime | None:
        return self.tombstone.deleted_at if self.tombstone else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "title": self.title,
            "status": self.status.value,
            "progress": self.progress,
            "sort_order": self.sort_order,
            "completed_at": _ts(self.completed_at),
            "created_at": _ts(self.created_at),
            "tombstone": self.tombstone.to_dict() if self.tombstone else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Goal:
        return cls(
            id=data["id"],
            user_id=data["user_id"],
            title=data.get("title", ""),
            status=GoalStatus(data.get("status", "active")),
            progress=data.get("progress", 0),
            sort_order=data.get("sort_order", 0),
            completed_at=_parse_ts(data.get("completed_at")),
            created_at=_parse_ts(data.get("created_at")),
            tombstone=Tombstone.from_dict(data.get("tombstone")),
        )


@dataclass
class User:
    id: str
    name: str = ""
    current_streak: int = 0
    longest_streak: int = 0
    last_active_date: date | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "current_streak": self.current_streak,
            "longest_streak": self.longest_streak,
            "last_active_date": self.last_active_date.isoformat() if self.last_active_date else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> User:
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            current_streak=data.get("current_streak", 0),
            longest_streak=data.get("longest_streak", 0),
            last_active_date=_parse_date(data.get("last_active_date")),
        )


@dataclass
class DailyPlan:
    id: str
    user_id: str
    date: date
    selected_task_ids: list[str] = field(default_factory=list)
    total_estimated_minutes: int = 0
    focus_threshold_minutes: int = 360
    is_overcommitted: bool = False
    status: PlanStatus = PlanStatus.IN_PROGRESS

    @property
    def overcommitted_by_minutes(self) -> int:
        return max(0, self.total_estimated_minutes - self.focus_threshold_minutes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "date": self.date.isoformat(),
            "selected_task_ids": list(self.selected_task_ids),
            "total_estimated_minutes": self.total_estimated_minutes,
            "focus_threshold_minutes": self.focus_threshold_minutes,
            "is_overcommitted": self.is_overcommitted,
            "status": self.status.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DailyPlan:
        return cls(
            id=data["id"],
            user_id=data["user_id"],
            date=date.fromisoformat(data["date"]),
            selected_task_ids=list(data.get("selected_task_ids") or []),
            total_estimated_minutes=data.get("total_estimated_minutes", 0),
            focus_threshold_minutes=data.get("focus_threshold_minutes", 360),
            is_overcommitted=bool(data.get("is_overcommitted", False)),
            status=PlanStatus(data.get("status", "in_progress")),
        )


@dataclass
class DailyActivity:
    user_id: str
    date: date
    tasks_completed: int = 0
    goals_advanced: int = 0

    @property
    def key(self) -> str:
        return activity_key(self.user_id, self.date)

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "date": self.date.isoformat(),
            "tasks_completed": self.tasks_completed,
            "goals_advanced": self.goals_advanced,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DailyActivity:
        return cls(
            user_id=data["user_id"],
            date=date.fromisoformat(data["date"]),
            tasks_completed=data.get("tasks_completed", 0),
            goals_advanced=data.get("goals_advanced", 0),
        )


def activity_key(user_id: str, day: date) -> str:
    return f"{user_id}:{day.isoformat()}"
