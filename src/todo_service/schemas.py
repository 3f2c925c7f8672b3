from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_core import PydanticCustomError

# Error types whose message is safe to hand back to the client verbatim.
CLIENT_ERROR_TYPES = frozenset({"title_required", "completed_type"})


def _normalize_title(value: Any) -> str:
    """
    Trim a title and reject anything that is not a non-empty string.
    """
    if not isinstance(value, str) or not value.strip():
        raise PydanticCustomError("title_required", "Title is required")
    return value.strip()


def _ensure_bool(value: Any) -> Any:
    if not isinstance(value, bool):
        raise PydanticCustomError("completed_type", "Completed must be a boolean")
    return value


class _TodoPayload(BaseModel):
    title: Optional[str] = Field(
        default=None,
        validate_default=True,
        description="Short title for the todo item; surrounding whitespace is trimmed",
    )

    @field_validator("title", mode="before")
    @classmethod
    def validate_title(cls, v: Any) -> str:
        return _normalize_title(v)


# PUBLIC_INTERFACE
class TodoCreate(_TodoPayload):
    """
    Schema for creating a new Todo item.

    An omitted or null completed flag means false.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Buy milk",
                "completed": False,
            }
        }
    )

    completed: bool = Field(default=False, description="Completion status flag")

    @field_validator("completed", mode="before")
    @classmethod
    def validate_completed(cls, v: Any) -> bool:
        if v is None:
            return False
        return _ensure_bool(v)


# PUBLIC_INTERFACE
class TodoUpdate(_TodoPayload):
    """
    Schema for updating an existing Todo item.

    The title is required and replaced; an omitted or null completed flag keeps
    the stored value.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Buy oat milk",
                "completed": True,
            }
        }
    )

    completed: Optional[bool] = Field(default=None, description="Completion status flag")

    @field_validator("completed", mode="before")
    @classmethod
    def validate_completed(cls, v: Any) -> Optional[bool]:
        if v is None:
            return None
        return _ensure_bool(v)


# PUBLIC_INTERFACE
class TodoOut(BaseModel):
    """
    Schema returned by the API for a Todo item. Extra storage columns pass through.
    """

    model_config = ConfigDict(
        extra="allow",
        json_schema_extra={
            "example": {
                "id": 1,
                "title": "Buy milk",
                "completed": False,
                "created_at": "2025-01-25T10:15:30.123456",
            }
        },
    )

    id: int = Field(..., description="Unique identifier of the todo item")
    title: str = Field(..., description="Short title for the todo item")
    completed: Optional[bool] = Field(..., description="Completion status flag; null only for legacy rows")


class ErrorOut(BaseModel):
    """Body of every error response."""

    error: str = Field(..., description="Human readable error message")
