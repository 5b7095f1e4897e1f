"""
Board snapshot loading and template lookup.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict

from trello_sync.core.errors import BoardItemMissing
from trello_sync.core.utils import find_by_name
from trello_sync.domain.models import BoardSnapshot, TrelloLabel, TrelloList
from trello_sync.trello.client import TrelloClient

logger = logging.getLogger(__name__)


async def load_board_snapshot(trello: TrelloClient, board_id: str) -> BoardSnapshot:
    """Fetch a board with its lists and labels as one immutable value."""
    board, lists, labels = await asyncio.gather(
        trello.get_board(board_id),
        trello.get_lists(board_id),
        trello.get_labels(board_id),
    )
    snapshot = BoardSnapshot(
        id=board.get("id", board_id),
        name=board.get("name", ""),
        lists=tuple(TrelloList(id=lst["id"], name=lst.get("name", "")) for lst in lists),
        labels=tuple(TrelloLabel(id=lbl["id"], name=lbl.get("name", "")) for lbl in labels),
    )
    logger.info(
        "Loaded board %s (%s): %d lists, %d labels",
        snapshot.id, snapshot.name, len(snapshot.lists), len(snapshot.labels),
    )
    return snapshot


async def find_template_card(
    trello: TrelloClient,
    reference_board_id: str,
    list_name: str,
    card_name: str,
) -> Dict[str, Any]:
    """Locate a template card by list and card name on the reference board."""
    lists = await trello.get_lists(reference_board_id)
    template_list = find_by_name(lists, list_name)
    if template_list is None:
        raise BoardItemMissing(
            f"no list named {list_name!r} on reference board {reference_board_id}",
            operation="find_template_card",
        )
    cards = await trello.get_cards_for_list(template_list["id"])
    card = find_by_name(cards, card_name)
    if card is None:
        raise BoardItemMissing(
            f"no template card named {card_name!r} in list {list_name!r}",
            operation="find_template_card",
        )
    return card
