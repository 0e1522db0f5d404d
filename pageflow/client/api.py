from typing import Any, Dict, List, Optional
import logging

import httpx

logger = logging.getLogger(__name__)


class PagesApiClient:
    """Thin async wrapper over the REST API. Raises ``httpx.HTTPStatusError`` on non-2xx."""

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.token = token
        self._client = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"} if self.token else {}

    async def _request(self, method: str, url: str, **kwargs) -> Any:
        response = await self._client.request(method, url, headers=self._headers(), **kwargs)
        response.raise_for_status()
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    async def login(self, email: str, password: str) -> str:
        """Exchange credentials for a token and keep it for later calls"""
        data = await self._request("POST", "/auth/login", json={"email": email, "password": password})
        self.token = data["access_token"]
        return self.token

    # ---------- blocks ----------

    async def get_blocks(self, page_id: str) -> List[Dict[str, Any]]:
        return await self._request("GET", f"/pages/{page_id}/blocks")

    async def create_block(
        self,
        page_id: str,
        type: str,
        content: Optional[Dict[str, Any]] = None,
        parent_id: Optional[str] = None,
        order: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        body = {"type": type, "content": content or {}, "parent_id": parent_id, "metadata": metadata or {}}
        if order is not None:
            body["order"] = order
        return await self._request("POST", f"/pages/{page_id}/blocks", json=body)

    async def update_block(
        self,
        block_id: str,
        content: Optional[Dict[str, Any]] = None,
        type: Optional[str] = None,
        base_version: Optional[int] = None
    ) -> Dict[str, Any]:
        body = {"content": content, "type": type, "base_version": base_version}
        return await self._request(
            "PATCH", f"/blocks/{block_id}",
            json={key: value for key, value in body.items() if value is not None}
        )

    async def delete_block(self, block_id: str) -> List[str]:
        data = await self._request("DELETE", f"/blocks/{block_id}")
        return data["deleted"]

    async def reorder_blocks(self, page_id: str, moves: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return await self._request("PUT", f"/pages/{page_id}/blocks/reorder", json={"blocks": moves})

    # ---------- comments ----------

    async def list_comments(self, page_id: str, block_id: Optional[str] = None) -> List[Dict[str, Any]]:
        params = {"block_id": block_id} if block_id else None
        return await self._request("GET", f"/pages/{page_id}/comments", params=params)

    async def create_comment(
        self,
        page_id: str,
        content: str,
        block_id: Optional[str] = None,
        parent_id: Optional[str] = None
    ) -> Dict[str, Any]:
        body = {"content": content, "block_id": block_id, "parent_id": parent_id}
        return await self._request("POST", f"/pages/{page_id}/comments", json=body)

    async def update_comment(self, comment_id: str, content: str) -> Dict[str, Any]:
        return await self._request("PATCH", f"/comments/{comment_id}", json={"content": content})

    async def delete_comment(self, comment_id: str) -> List[str]:
        data = await self._request("DELETE", f"/comments/{comment_id}")
        return data["deleted"]

    async def resolve_comment(self, comment_id: str) -> Dict[str, Any]:
        return await self._request("POST", f"/comments/{comment_id}/resolve")

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "PagesApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
