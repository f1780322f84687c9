"""Tests for viewer identity and auth dependencies."""

from uuid import uuid4

import pytest
from fastapi import HTTPException

from src.auth.dependencies import (
    get_current_viewer,
    get_current_viewer_optional,
    require_permission,
)
from src.auth.permissions import ViewerRole
from src.auth.schemas import Viewer
from src.auth.security import issue_viewer_token
from src.comments.dependencies import moderation_scope


class TestViewerFromClaims:
    """Tests for building a Viewer from token claims."""

    def test_full_claims(self) -> None:
        viewer_id = uuid4()

        viewer = Viewer.from_claims(
            {
                "sub": str(viewer_id),
                "role": "creator",
                "username": "ana",
                "target_ids": ["v1", "v2"],
            }
        )

        assert viewer.id == viewer_id
        assert viewer.role is ViewerRole.CREATOR
        assert viewer.username == "ana"
        assert viewer.target_ids == ["v1", "v2"]

    def test_defaults_to_viewer(self) -> None:
        viewer = Viewer.from_claims({"sub": str(uuid4())})
        assert viewer.role is ViewerRole.VIEWER
        assert viewer.target_ids == []

    def test_unknown_role_is_viewer(self) -> None:
        viewer = Viewer.from_claims({"sub": str(uuid4()), "role": "superadmin"})
        assert viewer.role is ViewerRole.VIEWER


class TestCurrentViewer:
    """Tests for the token dependencies."""

    @pytest.mark.asyncio
    async def test_valid_token(self) -> None:
        viewer_id = uuid4()
        token = issue_viewer_token(viewer_id, "moderator")

        viewer = await get_current_viewer(token)

        assert viewer.id == viewer_id
        assert viewer.role is ViewerRole.MODERATOR

    @pytest.mark.asyncio
    async def test_missing_token(self) -> None:
        with pytest.raises(HTTPException) as exc:
            await get_current_viewer(None)
        assert exc.value.status_code == 401
        assert exc.value.detail == "Sign in required"

    @pytest.mark.asyncio
    async def test_malformed_subject(self) -> None:
        token = issue_viewer_token("not-a-uuid")

        with pytest.raises(HTTPException) as exc:
            await get_current_viewer(token)
        assert exc.value.detail == "Invalid or expired token"

    @pytest.mark.asyncio
    async def test_optional_viewer(self) -> None:
        assert await get_current_viewer_optional(None) is None
        assert await get_current_viewer_optional("garbage") is None

    @pytest.mark.asyncio
    async def test_require_permission(self) -> None:
        checker = require_permission(ViewerRole.MODERATOR)

        with pytest.raises(HTTPException) as exc:
            await checker(Viewer(id=uuid4(), role=ViewerRole.CREATOR))
        assert exc.value.status_code == 403

        admin = Viewer(id=uuid4(), role=ViewerRole.ADMIN)
        assert await checker(admin) is admin


class TestModerationScope:
    """Which content items a viewer may moderate."""

    def test_moderator_unrestricted(self) -> None:
        moderator = Viewer(id=uuid4(), role=ViewerRole.MODERATOR)
        assert moderation_scope(moderator) is None
        assert moderation_scope(moderator, ["v9"]) == ["v9"]

    def test_creator_limited_to_owned(self) -> None:
        creator = Viewer(id=uuid4(), role=ViewerRole.CREATOR, target_ids=["v2", "v1"])
        assert moderation_scope(creator) == ["v1", "v2"]
        assert moderation_scope(creator, ["v1", "v3"]) == ["v1"]

    def test_creator_without_items(self) -> None:
        creator = Viewer(id=uuid4(), role=ViewerRole.CREATOR)
        assert moderation_scope(creator) == []
