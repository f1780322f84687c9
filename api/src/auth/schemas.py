"""Pydantic schemas for viewer identity."""

from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from .permissions import ViewerRole


class Viewer(BaseModel):
    """Authenticated viewer, built from access token claims."""

    id: UUID
    role: ViewerRole = ViewerRole.VIEWER
    username: str | None = None
    display_name: str | None = None
    avatar_url: str | None = None
    # Content items owned by a creator, used to scope studio moderation
    target_ids: list[str] = Field(default_factory=list)

    @classmethod
    def from_claims(cls, payload: dict[str, Any]) -> "Viewer":
        """Create viewer from a decoded token payload."""
        role = payload.get("role") or ViewerRole.VIEWER.value
        try:
            role = ViewerRole(role)
        except ValueError:
            role = ViewerRole.VIEWER

        return cls(
            id=payload["sub"],
            role=role,
            username=payload.get("username"),
            display_name=payload.get("display_name"),
            avatar_url=payload.get("avatar_url"),
            target_ids=payload.get("target_ids") or [],
        )
