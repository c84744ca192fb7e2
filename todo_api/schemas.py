from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .models import TITLE_MAX_LENGTH
from .utils import as_utc, normalize_tags


class CamelModel(BaseModel):
    """JSON uses camelCase; snake_case field names are accepted on input too"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TaskInput(CamelModel):
    """Body of POST and PUT; a PUT replaces every field"""

    title: str = Field(..., min_length=1, max_length=TITLE_MAX_LENGTH)
    completed: bool = False
    due_date: Optional[datetime] = None
    tags: List[str] = Field(default_factory=list)

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Title must be 1-140 characters long.")
        return value

    @field_validator("completed", mode="before")
    @classmethod
    def completed_default(cls, value):
        return False if value is None else value

    @field_validator("due_date")
    @classmethod
    def due_date_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value)

    @field_validator("tags", mode="before")
    @classmethod
    def tags_default(cls, value):
        return [] if value is None else value

    @field_validator("tags")
    @classmethod
    def tags_unique(cls, value: List[str]) -> List[str]:
        return normalize_tags(value)


class TaskResponse(CamelModel):
    id: str
    title: str
    completed: bool
    due_date: Optional[datetime] = None
    tags: List[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )

    @field_validator("tags", mode="before")
    @classmethod
    def tag_text(cls, value):
        # ORM rows carry TaskTag objects
        return [getattr(tag, "tag", tag) for tag in value or []]

    @field_validator("due_date", "created_at", "updated_at")
    @classmethod
    def timestamps_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value)


class TaskListResponse(CamelModel):
    tasks: List[TaskResponse]
    total_count: int
    completed_count: int
    returned_count: int


class TaskQuery(BaseModel):
    """List parameters, already parsed from the query string"""

    search_term: Optional[str] = None
    completed: Optional[bool] = None
    overdue: Optional[bool] = None
    skip: int = Field(default=0, ge=0)
    take: int = Field(default=20, ge=1)
    order_by: str = "createdAt"
    ascending: bool = False
