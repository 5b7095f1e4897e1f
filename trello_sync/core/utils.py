"""
Trello Sync — Shared text builders.

Pure functions that produce the names, descriptions and links written onto
Trello. No imports from other trello_sync modules except the domain models
and trello_sync.core.constants.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from trello_sync.core.constants import (
    CARD_LINK_TEXT,
    CHECKITEM_LINK_TEXT,
    SEND_RETURNS_CAPTION,
    VIEW_CLIENT_CAPTION,
)
from trello_sync.domain.models import Client, Deliverable


# ---------------------------------------------------------------------------
# Controller deep links
# ---------------------------------------------------------------------------

def entity_url(controller_url: str, entity_id: str) -> str:
    return f"{controller_url.rstrip('/')}/entities/{entity_id}"


def client_url(controller_url: str, client_id: str) -> str:
    return f"{controller_url.rstrip('/')}/clients/{client_id}"


def send_returns_url(controller_url: str, client_id: str) -> str:
    return f"{client_url(controller_url, client_id)}?sendReturns=true"


def markdown_link(text: str, url: str) -> str:
    return f"[{text}]({url})"


# ---------------------------------------------------------------------------
# Checklist items
# ---------------------------------------------------------------------------

def checkitem_name(deliverable: Deliverable, controller_url: str) -> str:
    """Display text for a deliverable's checklist item.

    ``[:newlink:](<controller>/entities/<id>) <entity name> (<type detail>)``
    """
    link = markdown_link(CHECKITEM_LINK_TEXT, entity_url(controller_url, deliverable.entity.id))
    return f"{link} {deliverable.entity.name} ({deliverable.type_detail_name})"


# ---------------------------------------------------------------------------
# Client cards
# ---------------------------------------------------------------------------

def client_card_name(client: Client) -> str:
    """Cards are named ``"Last, First"`` so lists sort by surname."""
    return f"{client.last_name}, {client.first_name}"


def client_card_description(client_id: str, controller_url: str) -> str:
    """Two deep links back into the controller: view client, who to send returns to."""
    view = markdown_link(CARD_LINK_TEXT, client_url(controller_url, client_id))
    send = markdown_link(CARD_LINK_TEXT, send_returns_url(controller_url, client_id))
    return f"{view} - {VIEW_CLIENT_CAPTION}\n{send} - {SEND_RETURNS_CAPTION}"


# ---------------------------------------------------------------------------
# Trello payload helpers
# ---------------------------------------------------------------------------

def find_by_name(items: List[Dict[str, Any]], name: str) -> Optional[Dict[str, Any]]:
    """First Trello object in ``items`` whose ``name`` matches exactly."""
    return next((item for item in items if item.get("name") == name), None)


def has_item_id(items: List[Dict[str, Any]], item_id: Optional[str]) -> bool:
    if not item_id:
        return False
    return any(item.get("id") == item_id for item in items)
