"""Request/response schemas for task endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import ConfigDict, Field, field_validator

from questlog.schemas import CamelModel

Priority = Literal["low", "medium", "high", "critical"]

MAX_TAGS = 10
MAX_TAG_LENGTH = 30


def _clean_tags(tags: list[str]) -> list[str]:
    cleaned = [t.strip() for t in tags if t.strip()]
    if len(cleaned) > MAX_TAGS:
        msg = f"At most {MAX_TAGS} tags allowed"
        raise ValueError(msg)
    for tag in cleaned:
        if len(tag) > MAX_TAG_LENGTH:
            msg = f"Tags must be at most {MAX_TAG_LENGTH} characters"
            raise ValueError(msg)
    return cleaned


class TaskCreateRequest(CamelModel):
    """Create a task. Unknown difficulties are stored as medium."""

    title: str = Field(..., max_length=200)
    description: str | None = Field(None, max_length=1000)
    priority: Priority = "medium"
    difficulty: str | None = None
    due_date: datetime | None = None
    category: str = Field("general", max_length=50)
    tags: list[str] = Field(default_factory=list)

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: str) -> str:
        v = v.strip()
        if not v:
            msg = "Title must not be empty"
            raise ValueError(msg)
        return v

    @field_validator("description")
    @classmethod
    def strip_description(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return v.strip() or None

    @field_validator("category")
    @classmethod
    def normalize_category(cls, v: str) -> str:
        return v.strip().lower() or "general"

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, v: list[str]) -> list[str]:
        return _clean_tags(v)


class TaskUpdateRequest(CamelModel):
    """Partial update. Difficulty, experience and completion are not editable."""

    model_config = ConfigDict(extra="forbid")

    title: str | None = Field(None, max_length=200)
    description: str | None = Field(None, max_length=1000)
    priority: Priority | None = None
    due_date: datetime | None = None
    category: str | None = Field(None, max_length=50)
    tags: list[str] | None = None

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        if not v:
            msg = "Title must not be empty"
            raise ValueError(msg)
        return v

    @field_validator("description")
    @classmethod
    def strip_description(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return v.strip() or None

    @field_validator("category")
    @classmethod
    def normalize_category(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return v.strip().lower() or "general"

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, v: list[str] | None) -> list[str] | None:
        if v is None:
            return None
        return _clean_tags(v)


class TaskResponse(CamelModel):
    id: int
    title: str
    description: str | None = None
    priority: str
    difficulty: str
    experience_points: int
    completed: bool
    completed_at: datetime | None = None
    due_date: datetime | None = None
    category: str
    tags: list[str] = []
    created_at: datetime | None = None


class CompletionResponse(CamelModel):
    experience_gained: int
    new_experience: int
    level_up: bool
    level: int
    achievements_unlocked: list[str] = []
