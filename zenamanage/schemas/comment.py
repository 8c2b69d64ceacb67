"""
Comment Pydantic schemas.
Task discussion threads; content is stored as plain text.
"""
from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, Field, computed_field, field_validator


class CommentBody(BaseModel):
    content: str = Field(min_length=1, max_length=10000)

    @field_validator("content")
    @classmethod
    def strip_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Comment cannot be blank")
        return v


class CommentCreate(CommentBody):
    pass


class CommentUpdate(CommentBody):
    pass


class CommentRead(BaseModel):
    id: uuid.UUID
    task_id: uuid.UUID
    author_id: uuid.UUID
    content: str
    edited_at: datetime | None
    created_at: datetime
    updated_at: datetime

    @computed_field  # type: ignore[misc]
    @property
    def is_edited(self) -> bool:
        return self.edited_at is not None

    model_config = {"from_attributes": True}
