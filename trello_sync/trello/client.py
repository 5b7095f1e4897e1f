"""
Trello Sync — Trello REST client.

Wraps all HTTP calls to the Trello API into a single, reusable class.
Handles retries and rate-limiting, and exposes exactly the board, card and
checklist operations the sync engine needs.

Usage::

    trello = TrelloClient(api_key, api_token)
    board      = await trello.get_board(board_id)
    checklists = await trello.get_checklists(card_id)
    item       = await trello.create_checklist_item(checklist_id, {"name": "..."})
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

import httpx

from trello_sync.core.constants import (
    TRELLO_API_URL,
    TRELLO_MAX_RETRIES,
    TRELLO_RETRY_BACKOFF_BASE,
    TRELLO_TIMEOUT_SECONDS,
    TRELLO_USER_AGENT,
)
from trello_sync.core.errors import ServiceError

logger = logging.getLogger(__name__)

_HEADERS = {"User-Agent": TRELLO_USER_AGENT, "Accept": "application/json"}


class TrelloClient:
    """Async HTTP client for the Trello REST API.

    Instantiate once per process; the internal httpx.AsyncClient is
    lazily created and reused across calls.  Every failure that survives
    the retry loop is raised as ``ServiceError`` naming the operation.
    """

    def __init__(
        self,
        api_key: str = "",
        api_token: str = "",
        base_url: str = TRELLO_API_URL,
        timeout: float = TRELLO_TIMEOUT_SECONDS,
        max_retries: int = TRELLO_MAX_RETRIES,
        backoff_base: float = TRELLO_RETRY_BACKOFF_BASE,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._auth = {"key": api_key, "token": api_token}
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._max_retries = max(1, max_retries)
        self._backoff_base = backoff_base
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _client_get(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                headers=_HEADERS,
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._client

    async def _request(
        self,
        operation: str,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Send one request with retries and exponential backoff.

        429 and 5xx responses and transport errors are retried; any other
        HTTP error fails immediately.  Returns the parsed JSON body.
        """
        client = await self._client_get()
        query = dict(self._auth)
        if params:
            query.update(params)

        delay = self._backoff_base
        for attempt in range(1, self._max_retries + 1):
            try:
                resp = await client.request(method, path, params=query, json=json)
                resp.raise_for_status()
                return resp.json()
            except httpx.HTTPStatusError as exc:
                status = exc.response.status_code
                retryable = status == 429 or status >= 500
                if retryable and attempt < self._max_retries:
                    logger.warning(
                        "Trello %s returned %d; retry %d/%d in %.0fs",
                        operation, status, attempt, self._max_retries, delay,
                    )
                    await asyncio.sleep(delay)
                    delay *= 2
                    continue
                logger.error("Trello %s failed with HTTP %d", operation, status)
                raise ServiceError(
                    f"HTTP {status} from {method.upper()} {path}",
                    operation=operation,
                    status_code=status,
                ) from exc
            except httpx.HTTPError as exc:
                if attempt < self._max_retries:
                    logger.warning(
                        "Trello %s request failed (%s); retry %d/%d in %.0fs",
                        operation, exc, attempt, self._max_retries, delay,
                    )
                    await asyncio.sleep(delay)
                    delay *= 2
                    continue
                logger.error(
                    "Trello %s failed after %d attempts: %s",
                    operation, self._max_retries, exc,
                )
                raise ServiceError(str(exc) or type(exc).__name__, operation=operation) from exc
            except ValueError as exc:
                raise ServiceError(f"invalid JSON body: {exc}", operation=operation) from exc
        raise ServiceError("retries exhausted", operation=operation)

    # ------------------------------------------------------------------
    # Boards
    # ------------------------------------------------------------------

    async def get_board(self, board_id: str) -> Dict[str, Any]:
        return await self._request("get_board", "GET", f"/boards/{board_id}")

    async def get_lists(self, board_id: str) -> List[Dict[str, Any]]:
        return await self._request("get_lists", "GET", f"/boards/{board_id}/lists")

    async def get_labels(self, board_id: str) -> List[Dict[str, Any]]:
        return await self._request("get_labels", "GET", f"/boards/{board_id}/labels")

    async def get_cards_for_list(self, list_id: str) -> List[Dict[str, Any]]:
        return await self._request("get_cards_for_list", "GET", f"/lists/{list_id}/cards")

    # ------------------------------------------------------------------
    # Cards and checklists
    # ------------------------------------------------------------------

    async def get_checklists(self, card_id: str) -> List[Dict[str, Any]]:
        """Checklists on a card, each with its ``checkItems``."""
        return await self._request("get_checklists", "GET", f"/cards/{card_id}/checklists")

    async def create_checklist_item(
        self, checklist_id: str, data: Dict[str, Any],
    ) -> Dict[str, Any]:
        return await self._request(
            "create_checklist_item", "POST", f"/checklists/{checklist_id}/checkItems",
            json=data,
        )

    async def update_checklist_item(
        self, card_id: str, checkitem_id: str, data: Dict[str, Any],
    ) -> Dict[str, Any]:
        return await self._request(
            "update_checklist_item", "PUT", f"/cards/{card_id}/checkItem/{checkitem_id}",
            json=data,
        )

    async def create_card(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Create a card.  ``data`` follows Trello's POST /cards fields
        (desc, idCardSource, idLabels, idList, idMembers, keepFromSource, name).
        """
        return await self._request("create_card", "POST", "/cards", json=data)

    async def close(self) -> None:
        """Cleanly close the underlying HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
