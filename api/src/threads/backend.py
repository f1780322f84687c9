"""Remote comment backend used by the thread engine.

``HttpCommentBackend`` talks to the comments API over httpx. The engine only
depends on the ``CommentBackend`` protocol, so tests plug in fakes.
"""

from typing import Any, Protocol

import httpx
import structlog

from src.config.settings import Settings


logger = structlog.get_logger(__name__)


class BackendError(Exception):
    """Remote call failed. ``message`` is for logs, not for users."""

    def __init__(self, message: str, status_code: int | None = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class CommentBackend(Protocol):
    """Remote operations the thread engine relies on."""

    async def load_thread(self, target_id: str) -> list[dict[str, Any]]: ...

    async def create_comment(
        self, target_id: str, body: str, parent_id: str | None = None
    ) -> dict[str, Any]: ...

    async def delete_comment(self, comment_id: str) -> None: ...

    async def vote(self, comment_id: str, liking: bool) -> dict[str, Any]: ...


class HttpCommentBackend:
    """Comments API client.

    The viewer's access token scopes deletes to the viewer's own comments.
    """

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ):
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        self._client = client or httpx.AsyncClient(
            base_url=base_url, timeout=timeout, headers=headers
        )
        if client is not None:
            self._client.headers.update(headers)

    @classmethod
    def from_settings(cls, settings: Settings, token: str | None = None) -> "HttpCommentBackend":
        return cls(
            base_url=settings.client_base_url,
            token=token,
            timeout=settings.client_timeout_seconds,
        )

    async def __aenter__(self) -> "HttpCommentBackend":
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self, method: str, path: str, json: dict[str, Any] | None = None
    ) -> Any:
        try:
            response = await self._client.request(method, path, json=json)
        except httpx.TimeoutException as e:
            logger.error("comments_api_timeout", method=method, path=path, error=str(e))
            raise BackendError(f"Comments API timeout: {e}") from e
        except httpx.RequestError as e:
            logger.error("comments_api_request_error", method=method, path=path, error=str(e))
            raise BackendError(f"Comments API request error: {e}") from e

        if response.status_code >= httpx.codes.BAD_REQUEST:
            logger.error(
                "comments_api_request_failed",
                method=method,
                path=path,
                status_code=response.status_code,
                response_text=response.text[:500],
            )
            raise BackendError(
                f"Comments API error: {response.status_code}",
                status_code=response.status_code,
            )

        if response.status_code == httpx.codes.NO_CONTENT:
            return None
        try:
            return response.json()
        except ValueError as e:
            logger.error("comments_api_invalid_body", method=method, path=path, error=str(e))
            raise BackendError("Comments API returned an invalid body") from e

    async def load_thread(self, target_id: str) -> list[dict[str, Any]]:
        data = await self._request("GET", f"/v1/comments/target/{target_id}")
        items = data.get("items") if isinstance(data, dict) else None
        if not isinstance(items, list):
            logger.error("comments_api_invalid_thread", target_id=target_id)
            raise BackendError("Comments API returned an invalid thread")
        return items

    async def create_comment(
        self, target_id: str, body: str, parent_id: str | None = None
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {"target_id": target_id, "body": body}
        if parent_id:
            payload["parent_id"] = parent_id
        return await self._request("POST", "/v1/comments", json=payload)

    async def delete_comment(self, comment_id: str) -> None:
        await self._request("DELETE", f"/v1/comments/{comment_id}")

    async def vote(self, comment_id: str, liking: bool) -> dict[str, Any]:
        return await self._request(
            "POST", f"/v1/comments/{comment_id}/votes", json={"liking": liking}
        )
